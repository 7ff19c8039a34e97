"""Atomic output files and YAML helpers.

G-code for a level-7 pyramid runs to tens of megabytes, and printer hosts
(OctoPrint, PrusaLink) pick up new files from a watched folder.  Every
file this package writes therefore goes through ``atomic_output``: the
data lands in a uniquely named temporary file beside the target, is
fsync'd, and only then renamed over the target.  A reader sees either the
previous file or the complete new one.

Usage:
    from sierpinski_pyramid.utils import fs
    fs.atomic_write_text(out_dir / "pyramid.gcode", gcode)
    fs.atomic_yaml_dump(manifest, out_dir / "pyramid.yaml")

    with fs.atomic_output(out_dir / "big.gcode") as f:
        for chunk in chunks:
            f.write(chunk)
"""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import IO, Any, Iterator, Union

import yaml

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create *p* and any missing parents; return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


@contextlib.contextmanager
def atomic_output(path: PathLike, mode: str = "w", encoding: str = "utf-8") -> Iterator[IO]:
    """Open a temporary file that replaces *path* when the block exits cleanly.

    Parameters
    ----------
    path : str or Path
        Final file location; parent directories are created
    mode : str
        "w" for text or "wb" for bytes
    encoding : str
        Text encoding, ignored in binary mode

    Raises
    ------
    RuntimeError
        If writing, syncing or renaming fails.  The temporary file is
        removed and *path* is left as it was.

    Notes
    -----
    If the block raises, the temporary file is discarded and the exception
    propagates unchanged.
    """
    if mode not in ("w", "wb"):
        raise ValueError(f"mode must be 'w' or 'wb', got {mode!r}")
    path = Path(path)
    directory = ensure_dir(path.parent)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=directory)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, mode, encoding=None if "b" in mode else encoding) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise RuntimeError(f"Could not write {path}: {e}") from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    with atomic_output(path, "wb") as f:
        f.write(data)


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    with atomic_output(path, "w", encoding=encoding) as f:
        f.write(text)


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Write *obj* as block-style YAML, keeping dict insertion order."""
    with atomic_output(path) as f:
        yaml.safe_dump(obj, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file with ``yaml.safe_load``.

    Returns
    -------
    Any
        Parsed document; ``None`` for an empty file

    Raises
    ------
    FileNotFoundError
        If *path* does not exist
    yaml.YAMLError
        If the document is malformed; the message names the file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"No such YAML file: {path}")
    with path.open(encoding="utf-8") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"{path}: {e}") from e
