#!/usr/bin/env python3
# za7z.py
#
# Batch compress (za) / extract (zx) files and folders through 7-Zip.
# Password saved at rest with AES-256-CBC under a machine-derived key.
#
# Dependencies: stdlib + cryptography + wcmatch

from __future__ import annotations

import argparse
import functools
import getpass as _getpass_mod
import hashlib
import json
import os
import re
import secrets
import shlex
import shutil
import socket
import subprocess
import sys
from dataclasses import dataclass, field, replace
from enum import IntEnum
from getpass import getpass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, TextIO, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from wcmatch import glob as wcglob


__version__ = "1.3.0"


# =========================
# Constants / Limits
# =========================

DEFAULT_ARCHIVER = "7z"
ARCHIVER_ENV = "ZA_ARCHIVER"
CONFIG_DIR_ENV = "ZA_CONFIG_DIR"
CREDENTIAL_FILENAME = "password.enc"

KEY_LEN = 32
IV_LEN = 16
BLOCK_BITS = 128

FORMATS = {
    "zip": ".zip",
    "7z": ".7z",
}
DEFAULT_FORMAT = "zip"

# Longest first so ".tar.gz" wins over ".gz".
ARCHIVE_EXTENSIONS: Tuple[str, ...] = (
    ".tar.gz", ".tar.bz2", ".tar.xz",
    ".zip", ".7z", ".rar", ".tar", ".tgz", ".gz", ".bz2", ".xz",
)

# Skip re-compressing a source when an existing archive is within 10% of its size.
SIZE_DIFF_THRESHOLD = 0.1

LEVEL_DEFAULT = 9
LEVEL_FAST = 0

GLOB_CHARS = frozenset("*?{[!")
GLOB_FLAGS = wcglob.GLOBSTAR | wcglob.BRACE | wcglob.NEGATE | wcglob.NODIR

YES_PATTERN = re.compile(r"^y(?:es)?[a-z]*$", re.IGNORECASE)

PASSWORD_MASK = "***"


# =========================
# Enums / Data
# =========================

class OperationMode(IntEnum):
    COMPRESS = 1
    EXTRACT = 2

    def verb(self) -> str:
        return "compress" if self == OperationMode.COMPRESS else "extract"

    def progressive(self) -> str:
        return "Compressing" if self == OperationMode.COMPRESS else "Extracting"


class SessionState(IntEnum):
    PENDING = 0
    AWAITING_PASSWORD = 1
    RESOLVING_TARGETS = 2
    CONFIRMING_BATCH = 3
    PROCESSING_ITEMS = 4
    DONE = 5
    ABORTED = 6


_TRANSITIONS = {
    SessionState.PENDING: {SessionState.AWAITING_PASSWORD},
    SessionState.AWAITING_PASSWORD: {SessionState.RESOLVING_TARGETS},
    SessionState.RESOLVING_TARGETS: {SessionState.CONFIRMING_BATCH},
    SessionState.CONFIRMING_BATCH: {SessionState.PROCESSING_ITEMS},
    SessionState.PROCESSING_ITEMS: {SessionState.DONE},
    SessionState.DONE: set(),
    SessionState.ABORTED: set(),
}


@dataclass(frozen=True)
class Options:
    """Everything one invocation needs, built once from the command line."""

    targets: Tuple[str, ...] = ()
    password: Optional[str] = None
    delete_source: bool = False
    assume_yes: bool = False
    archive_format: str = DEFAULT_FORMAT
    fast: bool = False
    force: bool = False
    reset_password: bool = False
    debug: bool = False
    show_password: bool = False
    archiver: str = DEFAULT_ARCHIVER
    config_dir: Optional[Path] = None

    @property
    def archive_suffix(self) -> str:
        return FORMATS[self.archive_format]

    @property
    def level(self) -> int:
        return LEVEL_FAST if self.fast else LEVEL_DEFAULT

    def describe(self) -> str:
        shown = self
        if self.password is not None and not self.show_password:
            shown = replace(self, password=PASSWORD_MASK)
        return repr(shown)


@dataclass
class ResolvedTargets:
    files: List[str] = field(default_factory=list)
    skipped_archives: List[str] = field(default_factory=list)
    skipped_unchanged: List[str] = field(default_factory=list)

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


@dataclass
class ItemResult:
    source: str
    output: str
    ok: bool = False
    error: Optional[str] = None
    deleted: bool = False
    delete_warning: Optional[str] = None


@dataclass
class BatchSummary:
    mode: OperationMode
    items: List[ItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemResult]:
        return [r for r in self.items if r.ok]

    @property
    def failed(self) -> List[ItemResult]:
        return [r for r in self.items if not r.ok]

    @property
    def deleted(self) -> List[ItemResult]:
        return [r for r in self.items if r.deleted]

    @property
    def delete_warnings(self) -> List[ItemResult]:
        return [r for r in self.items if r.delete_warning is not None]


# =========================
# Errors
# =========================

class ZaError(Exception):
    exit_code = 2


class UsageError(ZaError):
    pass


class ArchiverMissingError(ZaError):
    pass


class ResolutionError(ZaError):
    pass


class PasswordError(ZaError):
    pass


class CredentialError(ZaError):
    pass


class Cancelled(ZaError):
    exit_code = 1


class ArchiverError(ZaError):
    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail


# =========================
# Helpers
# =========================

def eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def is_yes(answer: str) -> bool:
    return bool(YES_PATTERN.match(answer.strip()))


def default_config_dir() -> Path:
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "za-7z"


def _sync_file(f: TextIO) -> None:
    try:
        f.flush()
        os.fsync(f.fileno())
    except OSError:
        pass


def _sync_dir(dir_path: Path) -> None:
    # Makes the rename durable; POSIX only.
    if os.name != "posix":
        return
    try:
        fd = os.open(str(dir_path), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def _discard(p: Path) -> None:
    try:
        p.unlink()
    except OSError:
        pass


def _restrict_to_owner(path: Path) -> None:
    if os.name != "posix":
        return
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


def _write_text_atomic_replace(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.parent / f".{path.name}.{secrets.token_hex(8)}.tmp"
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
    try:
        fd = os.open(str(tmp_path), flags, 0o600)
    except OSError as ex:
        raise CredentialError(f"Failed to create temporary file in {path.parent}: {ex}") from ex

    try:
        with os.fdopen(fd, "w", encoding="ascii", closefd=True) as f:
            f.write(text)
            _sync_file(f)
        os.replace(tmp_path, path)
        _sync_dir(path.parent)
    except OSError as ex:
        _discard(tmp_path)
        raise CredentialError(f"Failed to write credential file: {path} ({ex})") from ex

    _restrict_to_owner(path)


# =========================
# Credential store
# =========================

@functools.lru_cache(maxsize=None)
def derive_machine_key() -> bytes:
    """
    32-byte key from the machine identity: sha256(hostname-user-platform).
    Same machine and user => same key, so a saved password only opens here.
    """
    identity = f"{socket.gethostname()}-{_getpass_mod.getuser()}-{sys.platform}"
    return sha256(identity.encode("utf-8"))


def _aes_cbc(key: bytes, iv: bytes) -> Cipher:
    if len(key) != KEY_LEN:
        raise CredentialError("Internal: key must be 32 bytes.")
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def encrypt_password(plaintext: str, key: bytes) -> str:
    if not isinstance(plaintext, str):
        raise TypeError("password must be str")
    iv = os.urandom(IV_LEN)
    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = _aes_cbc(key, iv).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt_password(blob: str, key: bytes) -> Optional[str]:
    # Malformed, truncated and wrong-key blobs all come back as None.
    try:
        iv_hex, ct_hex = blob.strip().split(":")
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ct_hex)
        if len(iv) != IV_LEN or not ciphertext or len(ciphertext) % IV_LEN:
            return None
        decryptor = _aes_cbc(key, iv).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        plaintext = (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
    except (ValueError, UnicodeDecodeError, CredentialError):
        return None
    if not plaintext:
        return None
    return plaintext


class CredentialStore:
    def __init__(self, path: Path, key_func: Callable[[], bytes] = derive_machine_key) -> None:
        self.path = Path(path)
        self._key_func = key_func

    @classmethod
    def default(cls, config_dir: Optional[Path] = None) -> "CredentialStore":
        return cls((config_dir or default_config_dir()) / CREDENTIAL_FILENAME)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, password: str) -> None:
        if password == "":
            raise PasswordError("Empty password is not allowed.")
        _write_text_atomic_replace(self.path, encrypt_password(password, self._key_func()) + "\n")

    def load(self) -> Optional[str]:
        try:
            blob = self.path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError):
            return None
        return decrypt_password(blob, self._key_func())

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as ex:
            raise CredentialError(f"Failed to remove credential file: {self.path} ({ex})") from ex
        return True


def acquire_password(options: Options, store: CredentialStore) -> str:
    if options.password is not None:
        if options.password == "":
            raise PasswordError("Empty password is not allowed.")
        return options.password

    if not options.reset_password:
        saved = store.load()
        if saved is not None:
            print(f"Using saved password ({store.path}).")
            return saved
        if store.exists():
            print("Saved password could not be read on this machine; please enter it again.")

    try:
        password = getpass("Password: ")
    except EOFError as ex:
        raise PasswordError("No password given.") from ex
    if password == "":
        raise PasswordError("Empty password is not allowed.")

    try:
        answer = input("Save this password for future use? (y/n): ")
    except EOFError:
        answer = ""
    if is_yes(answer):
        try:
            store.save(password)
        except CredentialError as ex:
            eprint(f"Warning: {ex}")
        else:
            print(f"Password saved to {store.path}")
    return password


def show_password_info(store: CredentialStore) -> None:
    print(f"Password file: {store.path}")
    if not store.exists():
        print("Saved password: none")
        return
    readable = store.load() is not None
    print("Saved password: yes" + ("" if readable else " (cannot be decrypted on this machine)"))
    print("Encryption: AES-256-CBC, key derived from hostname, user name and platform")


def clear_saved_password(store: CredentialStore) -> None:
    if store.clear():
        print(f"Saved password removed: {store.path}")
    else:
        print("No saved password found.")


# =========================
# Path resolution
# =========================

def is_glob(pattern: str) -> bool:
    return any(ch in GLOB_CHARS for ch in pattern)


def has_archive_extension(path: str) -> bool:
    lower = path.lower()
    return any(lower.endswith(ext) for ext in ARCHIVE_EXTENSIONS)


def strip_archive_extension(path: str) -> str:
    lower = path.lower()
    for ext in ARCHIVE_EXTENSIONS:
        if lower.endswith(ext) and len(path) > len(ext):
            return path[: -len(ext)]
    return path


def filter_supported(paths: Sequence[str]) -> List[str]:
    return [p for p in paths if has_archive_extension(p)]


def _expand_glob(pattern: str, negatives: Sequence[str], only_files: bool) -> List[str]:
    flags = GLOB_FLAGS if only_files else GLOB_FLAGS & ~wcglob.NODIR
    matches = wcglob.glob([pattern, *negatives], flags=flags)
    return sorted(os.path.abspath(m) for m in matches)


def _expand_negatives_only(negatives: Sequence[str], only_files: bool) -> List[str]:
    flags = (GLOB_FLAGS if only_files else GLOB_FLAGS & ~wcglob.NODIR) | wcglob.NEGATEALL
    return sorted(os.path.abspath(m) for m in wcglob.glob(list(negatives), flags=flags))


def looks_unchanged(source: str, archive: str) -> bool:
    """True when `archive` exists and is within SIZE_DIFF_THRESHOLD of `source`'s size."""
    if os.path.isdir(source) or not os.path.isfile(archive):
        return False
    src_size = os.path.getsize(source)
    arc_size = os.path.getsize(archive)
    if src_size == 0:
        return arc_size == 0
    return abs(src_size - arc_size) / src_size <= SIZE_DIFF_THRESHOLD


def resolve(
    patterns: Sequence[str],
    exclude_archives: bool = False,
    *,
    archive_suffix: Optional[str] = None,
    only_files: bool = True,
) -> ResolvedTargets:
    """
    Expand literal paths and glob patterns into absolute, de-duplicated paths.

    - literals are kept only if they exist (directories stay single entries)
    - globs support *, **, {a,b}, [a-z]; "!pattern" excludes from every glob
    - first-seen order wins when several patterns hit the same path
    - exclude_archives moves archive files to skipped_archives and, with
      archive_suffix, sources whose archive already exists at a similar size
      to skipped_unchanged
    """
    negatives = [p for p in patterns if p.startswith("!") and not os.path.exists(p)]
    positives = [p for p in patterns if p not in negatives]

    collected: List[str] = []
    for pattern in positives:
        # Existing names win over glob syntax, e.g. "data[1].zip".
        if os.path.exists(pattern):
            collected.append(os.path.abspath(pattern))
        elif is_glob(pattern):
            collected.extend(_expand_glob(pattern, negatives, only_files))

    if negatives and not positives:
        collected.extend(_expand_negatives_only(negatives, only_files))

    seen: set[str] = set()
    result = ResolvedTargets()
    for path in collected:
        if path in seen:
            continue
        seen.add(path)
        if exclude_archives and has_archive_extension(path):
            result.skipped_archives.append(path)
        elif exclude_archives and archive_suffix and looks_unchanged(path, path + archive_suffix):
            result.skipped_unchanged.append(path)
        else:
            result.files.append(path)
    return result


# =========================
# Archiver
# =========================

def ensure_archiver(archiver: str) -> str:
    found = shutil.which(archiver)
    if found is None:
        raise ArchiverMissingError(f"Please install {archiver} first!")
    return found


def build_compress_command(
    archiver: str,
    output: str,
    source: str,
    password: str,
    archive_format: str = DEFAULT_FORMAT,
    level: int = LEVEL_DEFAULT,
) -> List[str]:
    return [archiver, "a", f"-t{archive_format}", output, source, f"-p{password}", f"-mx{level}"]


def build_extract_command(archiver: str, source: str, output_dir: str, password: str) -> List[str]:
    return [archiver, "x", source, f"-p{password}", f"-o{output_dir}", "-y"]


def mask_command(cmd: Sequence[str], password: str) -> str:
    secret = f"-p{password}"
    return shlex.join(f"-p{PASSWORD_MASK}" if arg == secret else arg for arg in cmd)


def _last_line(text: Optional[str]) -> str:
    lines = [ln.strip() for ln in (text or "").splitlines() if ln.strip()]
    return lines[-1] if lines else ""


def run_archiver(cmd: Sequence[str], debug: bool = False) -> None:
    try:
        if debug:
            proc = subprocess.run(list(cmd), check=False)
        else:
            proc = subprocess.run(list(cmd), check=False, capture_output=True, text=True)
    except OSError as ex:
        raise ArchiverError(f"Failed to run {cmd[0]}: {ex}") from ex

    if proc.returncode != 0:
        detail = "\n".join(part for part in (proc.stdout, proc.stderr) if part)
        message = f"{Path(cmd[0]).name} exited with status {proc.returncode}"
        reason = _last_line(proc.stderr) or _last_line(proc.stdout)
        if reason:
            message = f"{message}: {reason}"
        raise ArchiverError(message, detail=detail)


def remove_source(path: str) -> None:
    p = Path(path)
    if p.is_dir() and not p.is_symlink():
        shutil.rmtree(p)
    else:
        p.unlink()


# =========================
# Session
# =========================

class Session:
    """One batch run: password -> targets -> confirmation -> one archiver call per item."""

    def __init__(
        self,
        options: Options,
        mode: OperationMode,
        store: Optional[CredentialStore] = None,
    ) -> None:
        self.options = options
        self.mode = mode
        self.store = store or CredentialStore.default(options.config_dir)
        self.state = SessionState.PENDING
        self.history: List[SessionState] = [self.state]

    def _enter(self, state: SessionState) -> None:
        if state != SessionState.ABORTED and state not in _TRANSITIONS[self.state]:
            raise ZaError(f"Internal: invalid transition {self.state.name} -> {state.name}")
        self.state = state
        self.history.append(state)

    def debug(self, msg: str) -> None:
        if self.options.debug:
            print(f"Debug: {msg}")

    def run(self) -> BatchSummary:
        try:
            if not self.options.targets:
                raise UsageError(f"Please specify a file or directory to {self.mode.verb()}!")

            self._enter(SessionState.AWAITING_PASSWORD)
            password = acquire_password(self.options, self.store)

            self._enter(SessionState.RESOLVING_TARGETS)
            found = ensure_archiver(self.options.archiver)
            self.debug(f"archiver found: {found}")
            targets = self.resolve_targets()

            self._enter(SessionState.CONFIRMING_BATCH)
            self.confirm(targets)

            self._enter(SessionState.PROCESSING_ITEMS)
            summary = self.process(targets, password)

            self._enter(SessionState.DONE)
            return summary
        except ZaError:
            self._enter(SessionState.ABORTED)
            raise

    def resolve_targets(self) -> List[str]:
        opts = self.options
        if self.mode == OperationMode.COMPRESS:
            resolved = resolve(
                opts.targets,
                exclude_archives=not opts.force,
                archive_suffix=None if opts.force else opts.archive_suffix,
            )
            files = resolved.files
            if resolved.skipped_archives:
                print(f"Skipped {len(resolved.skipped_archives)} archive file(s):")
                for path in resolved.skipped_archives:
                    print(f"  - {path}")
            if resolved.skipped_unchanged:
                print(f"Skipped {len(resolved.skipped_unchanged)} file(s) with an up-to-date archive:")
                for path in resolved.skipped_unchanged:
                    print(f"  - {path}")
        else:
            resolved = resolve(opts.targets, exclude_archives=False)
            files = filter_supported(resolved.files)
            ignored = [p for p in resolved.files if p not in files]
            if ignored:
                print(f"Ignored {len(ignored)} non-archive file(s):")
                for path in ignored:
                    print(f"  - {path}")

        if not files:
            raise ResolutionError(f"No files found matching pattern: {', '.join(opts.targets)}")
        return files

    def confirm(self, targets: Sequence[str]) -> None:
        noun = "file(s)" if self.mode == OperationMode.COMPRESS else "archive(s)"
        print(f"Found {len(targets)} {noun} to {self.mode.verb()}:")
        for i, path in enumerate(targets, 1):
            print(f"  {i}. {path}")

        deleting = self.options.delete_source
        if deleting:
            print()
            print(f"WARNING: Source files will be deleted after successful {self.mode.verb()}ion!")
            print("Files that will be deleted:")
            for i, path in enumerate(targets, 1):
                print(f"  {i}. {path}")
            print()

        if self.options.assume_yes:
            print("Running with --yes, actions will execute instantly!")
            return

        if deleting:
            message = f"Do you want to {self.mode.verb()} these {len(targets)} {noun} and DELETE the source files? (y/n): "
        else:
            message = f"Do you want to {self.mode.verb()} these {len(targets)} {noun}? (y/n): "
        try:
            answer = input(message)
        except EOFError as ex:
            raise Cancelled("Operation cancelled by user!") from ex

        if answer.strip() == "" and not deleting:
            return
        if not is_yes(answer):
            raise Cancelled("Operation cancelled by user!")

    def output_path_for(self, source: str) -> str:
        if self.mode == OperationMode.COMPRESS:
            return source + self.options.archive_suffix
        return strip_archive_extension(source)

    def build_command(self, source: str, output: str, password: str) -> List[str]:
        opts = self.options
        if self.mode == OperationMode.COMPRESS:
            return build_compress_command(
                opts.archiver, output, source, password, opts.archive_format, opts.level
            )
        return build_extract_command(opts.archiver, source, os.path.dirname(output), password)

    def process(self, targets: Sequence[str], password: str) -> BatchSummary:
        summary = BatchSummary(mode=self.mode)
        total = len(targets)
        for index, source in enumerate(targets, 1):
            summary.items.append(self.process_item(index, total, source, password))

        print(
            f"Done: {len(summary.succeeded)} succeeded, {len(summary.failed)} failed"
            + (f", {len(summary.deleted)} source(s) deleted" if self.options.delete_source else "")
        )
        if summary.delete_warnings:
            eprint(f"Warning: {len(summary.delete_warnings)} source(s) could not be deleted.")
        return summary

    def process_item(self, index: int, total: int, source: str, password: str) -> ItemResult:
        output = self.output_path_for(source)
        result = ItemResult(source=source, output=output)
        print(f"[{index}/{total}] {self.mode.progressive()}: {source}")

        cmd = self.build_command(source, output, password)
        if self.options.show_password:
            self.debug(f"Command: {shlex.join(cmd)}")
        else:
            self.debug(f"Command: {mask_command(cmd, password)}")

        try:
            if self.mode == OperationMode.EXTRACT:
                # 7z extracts next to the archive; only matters when that directory vanished.
                Path(output).parent.mkdir(parents=True, exist_ok=True)
            run_archiver(cmd, debug=self.options.debug)
            if self.mode == OperationMode.COMPRESS and not os.path.exists(output):
                raise ArchiverError(f"Failed to create: {output}")
        except (ArchiverError, OSError) as ex:
            result.error = str(ex)
            eprint(f"FAILED to {self.mode.verb()} {source}: {ex}")
            if self.options.debug:
                detail = getattr(ex, "detail", "") or repr(ex)
                eprint(f"Debug: {detail}")
            return result

        result.ok = True
        if self.mode == OperationMode.COMPRESS:
            print(f"OK: created {output}")
        else:
            print(f"OK: extracted {source}")

        if self.options.delete_source:
            try:
                remove_source(source)
            except OSError as ex:
                result.delete_warning = str(ex)
                eprint(f"  Warning: Could not delete source: {ex}")
            else:
                result.deleted = True
                print(f"  Deleted source: {source}")
        return result


# =========================
# JSON minify
# =========================

def minify_json_file(path: Path) -> None:
    if not path.is_file():
        raise UsageError(f"File not found: {path}")
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as ex:
        raise ZaError(f"Failed to read JSON from {path}: {ex}") from ex
    path.write_text(json.dumps(obj, ensure_ascii=False, separators=(",", ":")), encoding="utf-8")


# =========================
# CLI
# =========================

def build_parser(mode: OperationMode) -> argparse.ArgumentParser:
    compress = mode == OperationMode.COMPRESS
    p = argparse.ArgumentParser(
        prog="za" if compress else "zx",
        description=(
            "Compress files/folders one archive per target with 7-Zip."
            if compress
            else "Extract 7-Zip supported archives in place."
        ),
        epilog=(
            "Examples:\n"
            "  za .test          # compress .test directory\n"
            "  za '.test/*'      # compress every file in .test\n"
            "  za file.txt       # compress a single file"
            if compress
            else "Examples:\n"
            "  zx backup.zip\n"
            "  zx 'downloads/**/*.{zip,7z}'"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )

    p.add_argument("targets", nargs="*", help="Files, directories or glob patterns.")
    p.add_argument("-p", "--password", default=None, help="Password (overrides the saved one, never saved).")
    p.add_argument(
        "--del", "--sdel",
        dest="delete_source",
        action="store_true",
        help=f"Delete sources after a successful {mode.verb()}ion.",
    )
    p.add_argument("-y", "--yes", dest="assume_yes", action="store_true", help="Do not ask for confirmation.")

    if compress:
        p.add_argument(
            "-f", "--format",
            dest="archive_format",
            choices=sorted(FORMATS),
            default=DEFAULT_FORMAT,
            help=f"Archive format (default {DEFAULT_FORMAT}).",
        )
        p.add_argument("--fast", action="store_true", help="Store only, no compression.")
        p.add_argument("--force", action="store_true", help="Also compress files that already are archives.")

    p.add_argument("--reset-password", action="store_true", help="Ignore the saved password and ask again.")
    p.add_argument("--clear-password", action="store_true", help="Remove the saved password.")
    p.add_argument("--password-info", action="store_true", help="Show where the password is stored.")
    p.add_argument("-d", "--debug", action="store_true", help="Show debug information and archiver output.")
    p.add_argument(
        "--show-password",
        action="store_true",
        help="With --debug: print archiver commands without masking the password.",
    )
    p.add_argument("-v", "--version", action="store_true", help="Show version and exit.")
    return p


def options_from_args(args: argparse.Namespace) -> Options:
    return Options(
        targets=tuple(args.targets),
        password=args.password,
        delete_source=bool(args.delete_source),
        assume_yes=bool(args.assume_yes),
        archive_format=getattr(args, "archive_format", DEFAULT_FORMAT),
        fast=bool(getattr(args, "fast", False)),
        force=bool(getattr(args, "force", False)),
        reset_password=bool(args.reset_password),
        debug=bool(args.debug),
        show_password=bool(args.debug and args.show_password),
        archiver=os.environ.get(ARCHIVER_ENV) or DEFAULT_ARCHIVER,
        config_dir=default_config_dir(),
    )


def main(mode: OperationMode, argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser(mode)
    args = parser.parse_args(argv)

    if args.version:
        print(f"za-7z version: {__version__}")
        return 0

    options = options_from_args(args)
    store = CredentialStore.default(options.config_dir)

    if args.clear_password:
        clear_saved_password(store)
        return 0
    if args.password_info:
        show_password_info(store)
        return 0

    if options.debug:
        print(f"Debug: {options.describe()}")

    if not options.targets:
        parser.print_usage(sys.stderr)

    Session(options, mode, store).run()
    return 0


def _run_cli(func: Callable[[], int]) -> int:
    try:
        return func()
    except ZaError as ex:
        eprint(f"Error: {ex}")
        return ex.exit_code
    except KeyboardInterrupt:
        eprint("Interrupted.")
        return 130


def za_main(argv: Optional[Sequence[str]] = None) -> int:
    return _run_cli(lambda: main(OperationMode.COMPRESS, argv))


def zx_main(argv: Optional[Sequence[str]] = None) -> int:
    return _run_cli(lambda: main(OperationMode.EXTRACT, argv))


def zajson_main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="zajson", description="Minify a JSON file in place.")
    p.add_argument("file", help="JSON file to rewrite without whitespace.")
    args = p.parse_args(argv)

    def _minify() -> int:
        path = Path(args.file)
        minify_json_file(path)
        print(f"Minified and saved: {path}")
        return 0

    return _run_cli(_minify)


if __name__ == "__main__":
    raise SystemExit(za_main())
