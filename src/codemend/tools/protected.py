"""Deny-list of sensitive paths that tools may never mutate."""

PROTECTED_FRAGMENTS: tuple[str, ...] = (
    # Credentials and secrets
    ".env",
    "id_rsa",
    "id_ed25519",
    ".pem",
    "credentials",
    "secrets",
    ".npmrc",
    ".pypirc",
    ".netrc",
    # Version control metadata
    ".git/",
    ".gitmodules",
    ".svn/",
    ".hg/",
    # Lockfiles
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "pipfile.lock",
    "cargo.lock",
    "composer.lock",
    "gemfile.lock",
)


def normalize_path(file_name: str) -> str:
    """Lower-case, forward-slash form with a leading slash for fragment checks."""
    path = file_name.strip().replace("\\", "/").lower()
    while path.startswith("./"):
        path = path[2:]
    return "/" + path.lstrip("/")


def is_protected_path(file_name: str) -> bool:
    """Return True if ``file_name`` matches any protected fragment.

    Matching is a case-insensitive substring check on the normalized path,
    so ".env", "config/.env.local" and ".git/config" are all protected.
    """
    path = normalize_path(file_name)
    if path == "/.git" or path.endswith("/.git"):
        return True
    return any(fragment in path for fragment in PROTECTED_FRAGMENTS)
