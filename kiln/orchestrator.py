"""
Orchestrator

Ties the collection store, the resolution pipeline and the transfer codec
into the flows the CLI exposes.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from kiln.config import EngineConfig
from kiln.exceptions import CollectionExistsError, DuplicateModError, FileConflictError
from kiln.models import CollectionState, ModReference, TransferDescriptor
from kiln.packager import KILN_SUFFIX, TransferCodec
from kiln.services import CollectionStore, Failed, ResolutionPipeline, Resolved, validate_name


@dataclass
class ImportReport:
    """Result of importing a .kiln file"""

    state: CollectionState
    resolved: List[Resolved] = field(default_factory=list)
    failed: List[Failed] = field(default_factory=list)


class KilnOrchestrator:
    """Kiln orchestrator"""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.store = CollectionStore(config.instances_dir)
        self.pipeline = ResolutionPipeline(
            config.registry,
            max_concurrent=config.settings.max_concurrent,
            max_retries=config.settings.max_retries,
            retry_delay=config.settings.retry_delay,
        )
        self.codec = TransferCodec()

    def new_collection(self, name: str) -> CollectionState:
        return self.store.create(name)

    def list_collections(self) -> List[str]:
        return self.store.list()

    def show(self, name: str) -> CollectionState:
        return self.store.load(name)

    def delete_collection(self, name: str) -> None:
        self.store.delete(name)

    async def add_mod(self, name: str, mod: ModReference) -> ModReference:
        """
        Add a mod to a collection.

        The mod is fetched into the collection's mods folder before it is
        recorded; a registry mod without a version is pinned to the
        release that was fetched. Nothing is fetched when the artifact
        would overwrite the file of another mod in the collection.

        Returns:
            The reference as persisted
        """
        state = self.store.load(name)
        state.ensure_absent(mod)

        release = await self.pipeline.lookup(mod)
        state.ensure_file_free(mod, release.target_filename)
        resolved = await self.pipeline.resolve_one(mod, self.store.mods_dir(name), release=release)

        state.append(resolved.reference, resolved.release.target_filename)
        self.store.save(state)
        logger.success(f"[add] '{resolved.reference}' added to '{name}'")
        return resolved.reference

    def remove_mod(self, name: str, identifier: str) -> ModReference:
        state = self.store.load(name)
        filename = state.files.get(identifier)
        removed = state.remove(identifier)
        self.store.save(state)

        if filename:
            artifact = self.store.mods_dir(name) / filename
            try:
                artifact.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"[remove] could not delete {artifact}: {e}")

        logger.success(f"[remove] '{removed.identifier}' removed from '{name}'")
        return removed

    async def export_collection(
        self,
        name: str,
        output: Optional[Path] = None,
        check: bool = False,
    ) -> Path:
        """
        Write a collection to a .kiln file.

        Args:
            name: collection to export
            output: target file, ``<name>.kiln`` in the working directory by default
            check: look every mod up on the registry first and warn about
                releases that can no longer be resolved
        """
        state = self.store.load(name)

        if check:
            outcomes = await self.pipeline.check_all(state.mods)
            for outcome in outcomes:
                if isinstance(outcome, Failed):
                    logger.warning(f"[export] '{outcome.reference}' cannot be resolved: {outcome.error}")

        output = output or Path.cwd() / f"{name}{KILN_SUFFIX}"
        await self.codec.write(state, output)
        logger.success(f"[export] '{name}' ({len(state.mods)} mods) -> {output}")
        return output

    async def import_collection(self, path: Path, name: Optional[str] = None) -> ImportReport:
        """
        Create a collection from a .kiln file and fetch its mods.

        Mods that fail to resolve are reported and left out; the collection
        is persisted once, with the mods that were fetched.
        """
        descriptor = await self.codec.read(path)
        return await self.import_descriptor(descriptor, name)

    async def import_descriptor(
        self, descriptor: TransferDescriptor, name: Optional[str] = None
    ) -> ImportReport:
        name = validate_name(name or descriptor.name)
        if self.store.exists(name):
            raise CollectionExistsError(f"collection '{name}' already exists", context={"name": name})

        logger.info(f"[import] '{name}' with {len(descriptor.mods)} mods")
        outcomes = await self.pipeline.resolve_all(descriptor.mods, self.store.mods_dir(name))

        report = ImportReport(state=CollectionState(name=name))
        for outcome in outcomes:
            if isinstance(outcome, Resolved):
                try:
                    report.state.append(outcome.reference, outcome.release.target_filename)
                    report.resolved.append(outcome)
                    continue
                except (DuplicateModError, FileConflictError) as e:
                    outcome = Failed(outcome.reference, e)
            report.failed.append(outcome)
            logger.warning(f"[import] skipped '{outcome.reference}': {outcome.error}")

        self.store.save(report.state)
        logger.success(
            f"[import] '{name}' created with {len(report.resolved)} of {len(outcomes)} mods"
        )
        return report
