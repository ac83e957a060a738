"""
Borsh encoding of rollup calls, driven by the rollup's universal-wallet schema.

The rollup publishes its schema at ``GET /rollup/schema``. The schema lists
every type the runtime understands, so a JSON call such as::

    {"warp": {"register": {...}}}

can be walked alongside the schema and written out as borsh bytes without
hard-coding any module layout here.
"""
import base58
from typing import Any, Dict, List, Optional, Tuple
from logger_config import get_logger
from utils.exceptions import SchemaEncodingError

logger = get_logger(__name__)

# size in bytes, signed
INTEGER_SIZES: Dict[str, Tuple[int, bool]] = {
    "u8": (1, False),
    "u16": (2, False),
    "u32": (4, False),
    "u64": (8, False),
    "u128": (16, False),
    "i8": (1, True),
    "i16": (2, True),
    "i32": (4, True),
    "i64": (8, True),
    "i128": (16, True),
}


def _normalize_name(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


def _u32(value: int) -> bytes:
    return value.to_bytes(4, "little")


def parse_integer(value: Any, path: str = "$") -> int:
    """Accept an int, a decimal string or a ``0x`` hex string."""
    if isinstance(value, bool):
        raise SchemaEncodingError("expected an integer, got a boolean", path)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text, 10)
        except ValueError:
            pass
    raise SchemaEncodingError(f"expected an integer, got {value!r}", path)


def _display_hint(display: Any, path: str) -> str:
    # Display hints are a bare name ("Hex") or a single-key object ({"Bech32": {...}})
    if display is None:
        return ""
    if isinstance(display, dict) and len(display) == 1:
        display = next(iter(display))
    if not isinstance(display, str):
        raise SchemaEncodingError(f"malformed byte display hint {display!r}", path)
    hint = display.lower()
    if hint not in ("", "hex", "base58"):
        raise SchemaEncodingError(f"unsupported byte display {display!r}", path)
    return hint


def parse_bytes(value: Any, display: Any = None, path: str = "$") -> bytes:
    """
    Convert a JSON value into raw bytes.

    Strings prefixed with ``0x`` are always hex. Otherwise the schema's display
    hint decides, and without a hint hex is tried before base58. Hints other
    than hex and base58 (e.g. bech32 addresses) are rejected.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list):
        if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in value):
            raise SchemaEncodingError("byte list must contain integers 0-255", path)
        return bytes(value)
    if not isinstance(value, str):
        raise SchemaEncodingError(f"expected bytes, got {value!r}", path)

    hint = _display_hint(display, path)
    try:
        if value.lower().startswith("0x"):
            return bytes.fromhex(value[2:])
        if hint == "hex":
            return bytes.fromhex(value)
        if hint == "base58":
            return base58.b58decode(value)
        try:
            return bytes.fromhex(value)
        except ValueError:
            return base58.b58decode(value)
    except ValueError as e:
        raise SchemaEncodingError(f"cannot decode {value!r} as bytes: {e}", path) from e


class RollupSchema:
    """A rollup's universal-wallet schema with a JSON to borsh encoder."""

    TRANSACTION = 0
    UNSIGNED_TRANSACTION = 1
    RUNTIME_CALL = 2
    ADDRESS = 3

    def __init__(self, document: Dict[str, Any]) -> None:
        types = document.get("types") if isinstance(document, dict) else None
        if not isinstance(types, list):
            raise SchemaEncodingError("schema document has no 'types' list")
        self.document = document
        self.types: List[Any] = types
        self.root_type_indices: List[int] = list(document.get("root_type_indices") or [])
        self.chain_data: Dict[str, Any] = document.get("chain_data") or {}

        self._encoders = {
            "Integer": self._encode_integer,
            "Boolean": self._encode_boolean,
            "String": self._encode_string,
            "ByteArray": self._encode_byte_array,
            "ByteVec": self._encode_byte_vec,
            "Array": self._encode_array,
            "Vec": self._encode_vec,
            "Option": self._encode_option,
            "Tuple": self._encode_tuple,
            "Struct": self._encode_struct,
            "Enum": self._encode_enum,
            "Map": self._encode_map,
            "Skip": self._encode_skip,
        }

    @property
    def chain_id(self) -> int:
        if "chain_id" not in self.chain_data:
            raise SchemaEncodingError("schema chain_data has no chain_id")
        return parse_integer(self.chain_data["chain_id"], "$.chain_data.chain_id")

    @property
    def chain_name(self) -> Optional[str]:
        return self.chain_data.get("chain_name")

    @property
    def chain_hash(self) -> bytes:
        """The 32-byte hash appended to every message before signing."""
        raw = self.document.get("chain_hash")
        if raw is None:
            raise SchemaEncodingError("schema document has no chain_hash")
        chain_hash = parse_bytes(raw, "hex", "$.chain_hash")
        if len(chain_hash) != 32:
            raise SchemaEncodingError(
                f"chain_hash must be 32 bytes, got {len(chain_hash)}", "$.chain_hash"
            )
        return chain_hash

    def root_index(self, root: int) -> int:
        try:
            return self.root_type_indices[root]
        except IndexError:
            raise SchemaEncodingError(f"schema has no root type #{root}") from None

    def root_type(self, root: int) -> Any:
        return self._type_at(self.root_index(root), "$")

    def encode(self, type_index: int, value: Any) -> bytes:
        out = bytearray()
        self._encode_value(self._type_at(type_index, "$"), value, "$", out)
        logger.debug(f'Encoded schema type #{type_index} into {len(out)} bytes')
        return bytes(out)

    def encode_runtime_call(self, call: Dict[str, Any]) -> bytes:
        return self.encode(self.root_index(self.RUNTIME_CALL), call)

    def encode_unsigned_transaction(self, tx: Dict[str, Any]) -> bytes:
        return self.encode(self.root_index(self.UNSIGNED_TRANSACTION), tx)

    def encode_transaction(self, tx: Dict[str, Any]) -> bytes:
        """
        Encode a signed transaction.

        When the transaction root is a versioned enum, a bare transaction body
        is wrapped in the first (oldest) variant.
        """
        kind, body = self._split(self.root_type(self.TRANSACTION), "$")
        if kind == "Enum":
            variants = body.get("variants") or []
            names = {v.get("name") for v in variants}
            already_wrapped = isinstance(tx, dict) and len(tx) == 1 and next(iter(tx)) in names
            if variants and not already_wrapped:
                tx = {variants[0]["name"]: tx}
        return self.encode(self.root_index(self.TRANSACTION), tx)

    def _type_at(self, index: Any, path: str) -> Any:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self.types):
            raise SchemaEncodingError(f"type index {index!r} out of range", path)
        return self.types[index]

    def _resolve(self, link: Any, path: str) -> Any:
        if isinstance(link, dict):
            if "ByIndex" in link:
                return self._type_at(link["ByIndex"], path)
            if "Immediate" in link:
                return link["Immediate"]
        if link == "Placeholder":
            raise SchemaEncodingError("unresolved placeholder link in schema", path)
        raise SchemaEncodingError(f"malformed type link {link!r}", path)

    def _split(self, ty: Any, path: str) -> Tuple[str, Any]:
        if isinstance(ty, str):
            return ty, None
        if isinstance(ty, dict) and len(ty) == 1:
            return next(iter(ty.items()))
        raise SchemaEncodingError(f"malformed type definition {ty!r}", path)

    def _encode_value(self, ty: Any, value: Any, path: str, out: bytearray) -> None:
        kind, body = self._split(ty, path)
        encoder = self._encoders.get(kind)
        if encoder is None:
            raise SchemaEncodingError(f"unsupported schema type {kind!r}", path)
        encoder(body, value, path, out)

    def _encode_integer(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        size = body[0] if isinstance(body, (list, tuple)) else (body or {}).get("size")
        if size not in INTEGER_SIZES:
            raise SchemaEncodingError(f"unknown integer size {size!r}", path)
        width, signed = INTEGER_SIZES[size]
        number = parse_integer(value, path)
        try:
            out += number.to_bytes(width, "little", signed=signed)
        except OverflowError:
            raise SchemaEncodingError(f"{number} does not fit in {size}", path) from None

    def _encode_boolean(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if not isinstance(value, bool):
            raise SchemaEncodingError(f"expected a boolean, got {value!r}", path)
        out.append(1 if value else 0)

    def _encode_string(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if not isinstance(value, str):
            raise SchemaEncodingError(f"expected a string, got {value!r}", path)
        raw = value.encode("utf-8")
        out += _u32(len(raw)) + raw

    def _encode_byte_array(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        body = body or {}
        raw = parse_bytes(value, body.get("display"), path)
        expected = body.get("len")
        if expected is not None and len(raw) != expected:
            raise SchemaEncodingError(
                f"expected {expected} bytes, got {len(raw)}", path
            )
        out += raw

    def _encode_byte_vec(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        raw = parse_bytes(value, (body or {}).get("display"), path)
        out += _u32(len(raw)) + raw

    def _encode_array(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if not isinstance(value, (list, tuple)):
            raise SchemaEncodingError(f"expected a list, got {value!r}", path)
        if len(value) != body.get("len"):
            raise SchemaEncodingError(
                f"expected {body.get('len')} items, got {len(value)}", path
            )
        item_type = self._resolve(body["value"], path)
        for idx, item in enumerate(value):
            self._encode_value(item_type, item, f"{path}[{idx}]", out)

    def _encode_vec(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if not isinstance(value, (list, tuple)):
            raise SchemaEncodingError(f"expected a list, got {value!r}", path)
        item_type = self._resolve(body["value"], path)
        out += _u32(len(value))
        for idx, item in enumerate(value):
            self._encode_value(item_type, item, f"{path}[{idx}]", out)

    def _encode_option(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if value is None:
            out.append(0)
            return
        out.append(1)
        self._encode_value(self._resolve(body["value"], path), value, path, out)

    def _encode_tuple(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        fields = body.get("fields") or []
        if not isinstance(value, (list, tuple)) or len(value) != len(fields):
            raise SchemaEncodingError(
                f"expected a {len(fields)}-tuple, got {value!r}", path
            )
        for idx, (field, item) in enumerate(zip(fields, value)):
            link = field["value"] if isinstance(field, dict) and "value" in field else field
            self._encode_value(self._resolve(link, path), item, f"{path}[{idx}]", out)

    def _encode_struct(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if not isinstance(value, dict):
            raise SchemaEncodingError(
                f"expected an object for {body.get('type_name', 'struct')}, got {value!r}", path
            )
        fields = body.get("fields") or []
        known = {field["display_name"] for field in fields}
        unknown = sorted(set(value) - known)
        if unknown:
            raise SchemaEncodingError(
                f"unknown field(s) {unknown} for {body.get('type_name', 'struct')}", path
            )

        for field in fields:
            name = field["display_name"]
            field_path = f"{path}.{name}"
            field_type = self._resolve(field["value"], field_path)
            if name not in value:
                kind = self._split(field_type, field_path)[0]
                if kind == "Skip":
                    continue
                if kind != "Option":
                    raise SchemaEncodingError("missing required field", field_path)
                out.append(0)
                continue
            self._encode_value(field_type, value[name], field_path, out)

    def _encode_enum(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        variants = body.get("variants") or []
        if isinstance(value, str):
            name, payload, has_payload = value, None, False
        elif isinstance(value, dict) and len(value) == 1:
            name, payload = next(iter(value.items()))
            has_payload = True
        else:
            raise SchemaEncodingError(
                f"expected a variant of {body.get('type_name', 'enum')}, got {value!r}", path
            )

        variant = self._find_variant(variants, name)
        if variant is None:
            raise SchemaEncodingError(
                f"unknown variant {name!r} of {body.get('type_name', 'enum')}", path
            )

        discriminant = parse_integer(variant.get("discriminant", variants.index(variant)), path)
        if not 0 <= discriminant <= 255:
            raise SchemaEncodingError(
                f"discriminant {discriminant} of variant {name!r} does not fit in u8", path
            )
        out.append(discriminant)

        link = variant.get("value")
        variant_path = f"{path}.{name}"
        if link is None:
            if has_payload and payload is not None:
                raise SchemaEncodingError("unit variant takes no value", variant_path)
            return
        if not has_payload:
            raise SchemaEncodingError("variant requires a value", variant_path)
        self._encode_value(self._resolve(link, variant_path), payload, variant_path, out)

    @staticmethod
    def _find_variant(variants: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
        for variant in variants:
            if variant.get("name") == name:
                return variant
        wanted = _normalize_name(name)
        for variant in variants:
            if _normalize_name(variant.get("name", "")) == wanted:
                return variant
        return None

    def _encode_map(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        if isinstance(value, dict):
            entries = list(value.items())
        elif isinstance(value, (list, tuple)) and all(
            isinstance(e, (list, tuple)) and len(e) == 2 for e in value
        ):
            entries = [tuple(e) for e in value]
        else:
            raise SchemaEncodingError(f"expected a map, got {value!r}", path)

        key_type = self._resolve(body["key"], path)
        value_type = self._resolve(body["value"], path)
        out += _u32(len(entries))
        for key, item in entries:
            self._encode_value(key_type, key, f"{path}[{key!r}]", out)
            self._encode_value(value_type, item, f"{path}[{key!r}]", out)

    def _encode_skip(self, body: Any, value: Any, path: str, out: bytearray) -> None:
        pass
