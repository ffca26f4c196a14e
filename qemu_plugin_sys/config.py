"""Environment-driven settings for the binding generator.

Reads ``QEMU_PLUGIN_SYS_*`` environment variables and an optional ``.env``
file. Build one instance per invocation and pass it down explicitly.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BindgenSettings(BaseSettings):
    """Settings for ``qemu-plugin-sys generate`` and the runtime loader.

    Examples
    --------
    Point the cache somewhere else and keep going past failed revisions::

        export QEMU_PLUGIN_SYS_CACHE_DIR=/var/cache/qemu-plugin-sys
        export QEMU_PLUGIN_SYS_KEEP_GOING=true

    Select the plugin API the runtime loader imports::

        export QEMU_PLUGIN_SYS_API_VERSION=2
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="QEMU_PLUGIN_SYS_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Build metadata
    package_name: str = "qemu-plugin-sys"
    cache_dir: Path | None = None

    # Upstream layout
    archive_url_template: str = "https://github.com/qemu/qemu/archive/{revision}.zip"
    header_path: str = "include/qemu/qemu-plugin.h"
    symbols_path: str = "plugins/qemu-plugins.symbols"
    request_timeout: float = 120.0

    # Appended to the policy's clang arguments, e.g. ["-I/usr/lib/clang/18/include"]
    # when the libclang wheel cannot find its own resource headers.
    extra_clang_args: list[str] = Field(default_factory=list)

    # Output naming, {ordinal} is the revision's 1-based index
    bindings_filename: str = "bindings_v{ordinal}.py"
    exports_filename: str = "qemu_plugin_api_v{ordinal}.def"

    # Behaviour
    strict_header_patch: bool = True
    keep_going: bool = False

    # Runtime: which generated API ``load_bindings`` picks by default
    api_version: int = 4

    def bindings_name(self, ordinal: int) -> str:
        return self.bindings_filename.format(ordinal=ordinal)

    def exports_name(self, ordinal: int) -> str:
        return self.exports_filename.format(ordinal=ordinal)
