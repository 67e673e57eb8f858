from dataclasses import dataclass
from functools import partial

from modelforge.codecs import elm
from modelforge.core.registry import (
    ContextDependencyRecord,
    EndpointRecord,
    ModelDeclarationRecord,
    RegistryBuilder,
    TypeCodecRecord,
)
from modelforge.core.validation import ValidationPipeline, compile_declaration
from modelforge.models import Capability, ModelDeclaration, Role

CAPABILITY_TABLE: dict[Role, frozenset[Capability]] = {
    Role.API_CONTRACT: frozenset(
        {Capability.SERIALIZABLE, Capability.CLIENT_CODEC, Capability.SCHEMA_EXPORT, Capability.DISPATCH}
    ),
    Role.ENTITY: frozenset({Capability.SERIALIZABLE, Capability.CLIENT_CODEC, Capability.SCHEMA_EXPORT}),
    Role.CACHE_RECORD: frozenset({Capability.SERIALIZABLE}),
    Role.PUSH_EVENT: frozenset({Capability.SERIALIZABLE}),
    Role.CLIENT_STATE: frozenset({Capability.SERIALIZABLE, Capability.CLIENT_CODEC}),
    Role.UNCLASSIFIED: frozenset(),
}


def codec_record(declaration: ModelDeclaration) -> TypeCodecRecord:
    """Client codec record whose Elm text is rendered only when the emitter asks for it."""
    return TypeCodecRecord(
        type_name=declaration.name,
        role=declaration.role,
        references=frozenset(declaration.referenced_names()),
        definition_emitter=partial(elm.definition, declaration),
        encoder_emitter=partial(elm.encoder, declaration),
        decoder_emitter=partial(elm.decoder, declaration),
    )


@dataclass(frozen=True)
class DecoratedDeclaration:
    declaration: ModelDeclaration
    capabilities: frozenset[Capability]
    pipeline: ValidationPipeline | None = None

    @property
    def name(self) -> str:
        return self.declaration.name

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def register(self, builder: RegistryBuilder) -> None:
        """Submit every record this declaration contributes to the catalog."""
        declaration = self.declaration
        builder.submit(ModelDeclarationRecord(self))

        if self.has(Capability.DISPATCH):
            container = declaration.container
            builder.submit(
                EndpointRecord(
                    endpoint_name=declaration.endpoint_name,
                    contract_type_name=declaration.name,
                    bundle_context_type_name=container.bundle_context,
                    bundled=container.bundle or container.bundle_context is not None,
                    access_tags=container.access_tags,
                )
            )

        if self.has(Capability.CLIENT_CODEC):
            builder.submit(codec_record(declaration))

        for spec in declaration.fields:
            if spec.dependency_source is not None:
                builder.submit(
                    ContextDependencyRecord(
                        declaring_type_name=declaration.name,
                        field_name=spec.name,
                        source_expression=spec.dependency_source,
                    )
                )


def decorate(declaration: ModelDeclaration) -> DecoratedDeclaration:
    """Attach the capability set for the declaration's role.

    Authors who already wrote capability markers keep exactly those; the
    role's serializable, codec and schema capabilities are not added a second
    time. Dispatch is only granted to request contracts, whose validation
    pipeline is compiled here so directive mistakes fail the build.
    """
    table = CAPABILITY_TABLE[declaration.role]
    if declaration.manually_decorated:
        capabilities = set(declaration.declared_capabilities)
    else:
        capabilities = set(table - {Capability.DISPATCH})

    pipeline = None
    if Capability.DISPATCH in table and declaration.is_request_contract:
        capabilities.add(Capability.DISPATCH)
        pipeline = compile_declaration(declaration)

    return DecoratedDeclaration(declaration=declaration, capabilities=frozenset(capabilities), pipeline=pipeline)
