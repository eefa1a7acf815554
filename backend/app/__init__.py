"""Paper catalog backend.

Dotenv files are read here, before anything imports `backend.app.config`,
so module-level settings see values from `backend/.env`, `backend/.env.local`
or a repository-level `.env`. Variables already present in the process
environment win.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parents[2]
_ENV_FILES = (
	_REPO_ROOT / "backend" / ".env",
	_REPO_ROOT / "backend" / ".env.local",
	_REPO_ROOT / ".env",
)

for _env_file in _ENV_FILES:
	if _env_file.exists():
		load_dotenv(dotenv_path=_env_file, override=False)

__all__ = []
