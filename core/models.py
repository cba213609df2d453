from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# A shadow(5) line has nine colon-separated fields. shadowc only fills the
# first two; the remaining seven are written empty.
SHADOW_FIELDS = 9


def make_token(pool: str, username: str) -> str:
    """Return the server-side address of an account: "pool/user" or "user".

    Every request kind (hash, keys, enumeration, rotation) must address an
    account through this function so responses line up with local state.
    """
    if pool:
        return f"{pool}/{username}"
    return username


def describe_user(pool: str, username: str) -> str:
    if not pool:
        return f"user {username}"
    return f"user {username} within pool {pool}"


@dataclass
class Shadow:
    username: str
    hash: str

    def __str__(self) -> str:
        fields = [""] * SHADOW_FIELDS
        fields[0] = self.username
        fields[1] = self.hash
        return ":".join(fields)


@dataclass(frozen=True)
class SSHKey:
    raw: str

    @property
    def comment(self) -> str:
        parts = self.raw.split(" ")
        if len(parts) < 3:
            return ""
        return parts[2]

    def __str__(self) -> str:
        return self.raw


# username -> keys retrieved from upstream, in server order
AuthorizedKeys = dict[str, list[SSHKey]]


@dataclass
class SyncReport:
    """What a sync run changed, for the CLI summary."""

    updated_users: list[str] = field(default_factory=list)
    skipped_users: list[str] = field(default_factory=list)
    added_keys: int = 0
    existing_keys: int = 0
