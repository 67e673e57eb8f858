import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from modelforge.config import CompilerConfig
from modelforge.core.decoration import codec_record
from modelforge.core.registry import EndpointRecord, Registry, TypeCodecRecord
from modelforge.core.shapes import parse_shape
from modelforge.emitters.artifact import Artifact
from modelforge.emitters.naming import TypeKey, TypeNamespace
from modelforge.errors import EmissionError
from modelforge.models import FieldSpec, ModelDeclaration, Role

logger = logging.getLogger(__name__)

_IMPORTS = (
    "import Http",
    "import Json.Decode",
    "import Json.Encode",
    "import Url.Builder",
)
_TRANSPORT_IMPORTS = frozenset({"import Http", "import Url.Builder"})

_AND_MAP = """andMap : Json.Decode.Decoder a -> Json.Decode.Decoder (a -> b) -> Json.Decode.Decoder b
andMap =
    Json.Decode.map2 (|>)"""

_CLIENT_ROLES = frozenset({Role.API_CONTRACT, Role.CLIENT_STATE})

SERVER_CONTEXT = "ServerContext"
_SERVER_CONTEXT_FIELDS = {
    "host": "String",
    "user_id": "Option<String>",
    "session_id": "Option<String>",
    "is_extension": "bool",
}


def module_path(module: str) -> str:
    return f"elm/{module.replace('.', '/')}.elm"


def _server_context() -> TypeCodecRecord:
    fields = tuple(FieldSpec(name=name, shape=parse_shape(rust)) for name, rust in _SERVER_CONTEXT_FIELDS.items())
    return codec_record(ModelDeclaration(path=Path(), name=SERVER_CONTEXT, role=Role.API_CONTRACT, fields=fields))


def _bundle(endpoint: EndpointRecord) -> TypeCodecRecord:
    """Record pairing an endpoint's input with the server context and optional hydrated data."""
    fields = [
        FieldSpec(name="context", shape=parse_shape(SERVER_CONTEXT)),
        FieldSpec(name="input", shape=parse_shape(endpoint.contract_type_name)),
    ]
    if endpoint.bundle_context_type_name is not None:
        fields.append(FieldSpec(name="data", shape=parse_shape(endpoint.bundle_context_type_name)))
    declaration = ModelDeclaration(
        path=Path(),
        name=f"{endpoint.endpoint_name}Bundle",
        role=Role.API_CONTRACT,
        fields=tuple(fields),
    )
    return codec_record(declaration)


def _strip_transport(header: str) -> str:
    return "\n".join(line for line in header.splitlines() if line not in _TRANSPORT_IMPORTS)


def _header(module: str) -> str:
    return "\n".join([f"module {module} exposing (..)", "", *_IMPORTS, "", "", _AND_MAP])


def _render(
    module: str,
    codecs: Iterable[TypeCodecRecord],
    namespace: TypeNamespace,
    header_filter: Callable[[str], str] | None = None,
) -> str:
    header = _header(module)
    if header_filter is not None:
        header = header_filter(header)
    blocks = [header]
    for codec in codecs:
        names = namespace.renames((codec.role, codec.type_name), codec.references)
        blocks.extend(
            [
                codec.definition_emitter(names=names),
                codec.encoder_emitter(names=names),
                codec.decoder_emitter(names=names),
            ]
        )
    return "\n\n\n".join(blocks) + "\n"


def _reachable(
    roots: list[TypeCodecRecord],
    by_key: dict[TypeKey, TypeCodecRecord],
    namespace: TypeNamespace,
) -> set[TypeKey]:
    seen: set[TypeKey] = set()
    stack = [(codec.role, codec.type_name) for codec in roots]
    while stack:
        key = stack.pop()
        if key in seen:
            continue
        seen.add(key)
        for reference in by_key[key].references:
            target = namespace.resolve(reference, prefer_role=key[0])
            if target is not None:
                stack.append(target)
    return seen


def emit_client_codecs(registry: Registry, config: CompilerConfig) -> list[Artifact]:
    """Render the backend module (every codec type) and the client-facing subset.

    The backend module drops transport-only imports; the client module keeps
    them and only contains types reachable from API contracts and client state.
    A type name declared under several roles is qualified with its role.
    """
    backend_path = module_path(config.backend_module)
    codecs = list(registry.type_codecs)
    bundled = [endpoint for endpoint in registry.endpoints if endpoint.bundled]
    if bundled:
        codecs.append(_server_context())
        codecs.extend(_bundle(endpoint) for endpoint in bundled)

    by_key: dict[TypeKey, TypeCodecRecord] = {}
    for codec in codecs:
        key = (codec.role, codec.type_name)
        if key in by_key:
            raise EmissionError(backend_path, f"Two {codec.role} client codecs are named {codec.type_name}")
        by_key[key] = codec
    try:
        namespace = TypeNamespace(by_key)
    except ValueError as exc:
        raise EmissionError(backend_path, str(exc)) from exc

    for codec in codecs:
        missing = sorted(ref for ref in codec.references if namespace.resolve(ref, prefer_role=codec.role) is None)
        if missing:
            raise EmissionError(
                backend_path, f"{codec.type_name} references {', '.join(missing)} without a client codec"
            )

    roots = [codec for codec in codecs if codec.role in _CLIENT_ROLES]
    client_keys = _reachable(roots, by_key, namespace)
    client_codecs = [codec for codec in codecs if (codec.role, codec.type_name) in client_keys]
    logger.debug("Client codecs: %d backend type(s), %d client type(s)", len(codecs), len(client_codecs))

    return [
        Artifact(backend_path, _render(config.backend_module, codecs, namespace, _strip_transport)),
        Artifact(module_path(config.client_module), _render(config.client_module, client_codecs, namespace)),
    ]
