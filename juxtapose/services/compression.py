import codecs
import gzip
import io
import zlib

from juxtapose.core.errors import CompressionError

_CHUNK_SIZE = 64 * 1024


def compress_gzip(text: str) -> bytes:
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as stream:
        encoder = codecs.getincrementalencoder("utf-8")()
        for start in range(0, len(text), _CHUNK_SIZE):
            stream.write(encoder.encode(text[start : start + _CHUNK_SIZE]))
        stream.write(encoder.encode("", final=True))
    return buffer.getvalue()


def decompress_gzip(payload: bytes) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")()
    parts: list[str] = []
    try:
        with gzip.GzipFile(fileobj=io.BytesIO(payload), mode="rb") as stream:
            while True:
                chunk = stream.read(_CHUNK_SIZE)
                if not chunk:
                    break
                parts.append(decoder.decode(chunk))
        parts.append(decoder.decode(b"", final=True))
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as exc:
        raise CompressionError(f"invalid gzip payload: {exc}") from exc
    return "".join(parts)
