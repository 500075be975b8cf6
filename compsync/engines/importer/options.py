"""Validated import options.

Flag combinations are checked once, when the options are built, so no stage
has to re-validate them. ``ConfigurationError`` is not a ``ValueError`` and
therefore propagates out of pydantic validators unwrapped.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from compsync.exceptions import ConfigurationError


class EnvironmentOptions(BaseModel):
    """Category selector: the requested ids are build-environment components."""

    model_config = ConfigDict(frozen=True)

    compiler: bool = False
    tester: bool = False
    extension: bool = False

    @model_validator(mode="after")
    def _single_category(self) -> EnvironmentOptions:
        selected = [name for name in ("compiler", "tester", "extension") if getattr(self, name)]
        if len(selected) > 1:
            flags = " and ".join(f"--{name}" for name in selected)
            raise ConfigurationError(f"you can't use {flags} flags combined")
        return self

    @property
    def category(self) -> str | None:
        for name in ("compiler", "tester", "extension"):
            if getattr(self, name):
                return name
        return None


class ImportOptions(BaseModel):
    """Write policy and behaviour switches for one import."""

    model_config = ConfigDict(frozen=True)

    ids: tuple[str, ...] = ()
    verbose: bool = False
    write_to_path: str | None = None
    objects_only: bool = False
    write_to_fs: bool = False
    with_environments: bool = False
    override: bool = False
    write_dists: bool = True
    write_config: bool = False
    install_packages: bool = True
    write_package_descriptor: bool = True
    package_manager_args: tuple[str, ...] = ()
    environment: EnvironmentOptions = EnvironmentOptions()

    @field_validator("ids", mode="before")
    @classmethod
    def _strip_ids(cls, v: object) -> object:
        if isinstance(v, (list, tuple)):
            return tuple(s.strip() for s in v if isinstance(s, str) and s.strip())
        return v

    @model_validator(mode="after")
    def _reject_contradictions(self) -> ImportOptions:
        if self.objects_only and self.write_to_fs:
            raise ConfigurationError("you can't use --objects and --write flags combined")
        if self.ids and self.write_to_fs:
            raise ConfigurationError("you can't use --write flag when importing specific ids")
        if self.environment.category and not self.ids:
            raise ConfigurationError(
                f"--{self.environment.category} requires at least one component id"
            )
        if self.write_to_path is not None and not self.write_to_path.strip():
            raise ConfigurationError("--path must not be empty")
        return self

    @property
    def import_all(self) -> bool:
        return not self.ids

    @property
    def should_write(self) -> bool:
        """Whether workspace files are touched.

        Import-all refreshes objects only unless ``--write`` was given.
        """
        if self.objects_only:
            return False
        if self.import_all:
            return self.write_to_fs
        return True

    @property
    def should_install_packages(self) -> bool:
        return self.should_write and self.install_packages and self.write_package_descriptor
