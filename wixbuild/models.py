"""Core data models shared across wixbuild components."""

from dataclasses import dataclass, field
import re
from typing import Optional, Tuple

_EMAIL_SUFFIX = re.compile(r"\s*<[^>]*>\s*$")


@dataclass(frozen=True)
class BinaryTarget:
    """An executable produced by the project, relative to the project root."""

    name: str
    path: str

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ProjectMetadata:
    """Normalized view of the project manifest consumed by the renderer."""

    name: str
    version: str
    authors: Tuple[str, ...] = ()
    description: Optional[str] = None
    license: Optional[str] = None
    binaries: Tuple[BinaryTarget, ...] = ()
    manufacturer_override: Optional[str] = None

    @property
    def msi_version(self) -> str:
        """Numeric core of the version; Windows Installer rejects pre-release tags."""
        return self.version.split("+", 1)[0].split("-", 1)[0]

    @property
    def manufacturer(self) -> str:
        """First author without the e-mail suffix, falling back to the name."""
        if self.manufacturer_override:
            return self.manufacturer_override
        for author in self.authors:
            cleaned = _EMAIL_SUFFIX.sub("", author).strip()
            if cleaned:
                return cleaned
        return self.name


@dataclass(frozen=True)
class SigningConfig:
    """Settings handed to the external signer."""

    certificate: Optional[str] = None
    timestamp_url: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    description: Optional[str] = None

    @property
    def certificate_is_file(self) -> bool:
        """True when ``certificate`` looks like a path rather than a thumbprint."""
        if not self.certificate:
            return False
        return not re.fullmatch(r"[0-9A-Fa-f]{40}", self.certificate.replace(" ", ""))
