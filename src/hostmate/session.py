"""A session wires every manager to one registry, context and configuration."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .accounts import AccountManager
from .commands import CommandRunner
from .config import AppConfig
from .context import ExecutionContext
from .downloads import DownloadManager
from .fields import FieldManager
from .logging import StructuredLogger
from .manager import Manager
from .packages import PackageManager
from .registry import CapabilityRegistry, DependencyProbe
from .templates import TemplateManager


@dataclass(slots=True)
class Session:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    context: ExecutionContext
    registry: CapabilityRegistry
    logger: StructuredLogger
    accounts: AccountManager
    packages: PackageManager
    downloads: DownloadManager
    templates: TemplateManager
    fields: FieldManager

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        context: ExecutionContext | None = None,
        runner: CommandRunner | None = None,
        logger: StructuredLogger | None = None,
    ) -> Session:
        """Build every manager from *config*."""
        context = context or config.execution_context()
        registry = CapabilityRegistry(DependencyProbe(timeout=context.probe_timeout))
        runner = runner or CommandRunner(sudo=config.use_sudo)
        shared = {"registry": registry, "context": context}
        fields_default = config.fields.default or config.default_driver("fields")
        return cls(
            config=config,
            context=context,
            registry=registry,
            logger=logger or StructuredLogger(config.logs_dir),
            accounts=AccountManager(
                runner=runner, default=config.default_driver("accounts"), **shared
            ),
            packages=PackageManager(
                runner=runner, default=config.default_driver("packages"), **shared
            ),
            downloads=DownloadManager(
                timeout=config.downloads.timeout,
                default=config.default_driver("downloads"),
                **shared,
            ),
            templates=TemplateManager(
                default_check=config.templates.check,
                default=config.default_driver("templates"),
                **shared,
            ),
            fields=FieldManager(
                struct=config.fields.struct or None,
                file=config.fields.file,
                default=fields_default,
                **shared,
            ),
        )

    def managers(self) -> Mapping[str, Manager]:
        """Return every manager keyed by role."""
        return {
            "accounts": self.accounts,
            "packages": self.packages,
            "downloads": self.downloads,
            "templates": self.templates,
            "fields": self.fields,
        }

    def manager(self, role: str) -> Manager:
        """Return the manager for *role*."""
        try:
            return self.managers()[role]
        except KeyError as exc:
            raise KeyError(f"Unknown role '{role}'.") from exc

    def refresh(self) -> None:
        """Re-probe every driver and forget cached selections."""
        for manager in self.managers().values():
            manager.refresh()


__all__ = ["Session"]
