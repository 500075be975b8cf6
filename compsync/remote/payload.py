"""Wire schema of a component object as served by a scope."""

from __future__ import annotations

from collections.abc import Collection

from pydantic import BaseModel, ConfigDict, field_validator

from compsync.engines.importer.models import ComponentId, ComponentObject


class ComponentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    scope: str
    name: str
    version: str
    files: dict[str, str]
    dependencies: list[str] = []
    dev_dependencies: list[str] = []
    packages: dict[str, str] = {}
    dists: dict[str, str] = {}
    compiler: str | None = None
    tester: str | None = None
    extensions: list[str] = []

    @field_validator("scope", "name", "version", mode="before")
    @classmethod
    def _strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v

    def to_object(self, known_scopes: Collection[str] | None = None) -> ComponentObject:
        """Build the domain object.

        Bare dependency names live in the same scope as the component. When
        *known_scopes* is given, a leading segment that is not a known scope is
        read as a namespace inside the component's own scope.
        """

        def parse(raw: str) -> ComponentId:
            return ComponentId.parse(raw, default_scope=self.scope, known_scopes=known_scopes)

        return ComponentObject(
            id=ComponentId(self.scope, self.name, self.version),
            files=self.files,
            dependencies=tuple(parse(d) for d in self.dependencies),
            dev_dependencies=tuple(parse(d) for d in self.dev_dependencies),
            packages=self.packages,
            dists=self.dists,
            compiler=parse(self.compiler) if self.compiler else None,
            tester=parse(self.tester) if self.tester else None,
            extensions=tuple(parse(e) for e in self.extensions),
        )

    @classmethod
    def from_object(cls, obj: ComponentObject) -> ComponentPayload:
        return cls(
            scope=obj.id.scope,
            name=obj.id.name,
            version=obj.id.version or "",
            files=dict(obj.files),
            dependencies=[str(d) for d in obj.dependencies],
            dev_dependencies=[str(d) for d in obj.dev_dependencies],
            packages=dict(obj.packages),
            dists=dict(obj.dists),
            compiler=str(obj.compiler) if obj.compiler else None,
            tester=str(obj.tester) if obj.tester else None,
            extensions=[str(e) for e in obj.extensions],
        )
