# =============================================================================
# Provider Profiles
# =============================================================================
# Static table of the mailbox services we know how to talk to. Each profile
# carries the IMAP endpoint and the canonical paths of the special folders,
# which differ per provider (Gmail nests them under "[Gmail]/").
#
# No autodiscovery: an unknown provider is rejected before any network
# activity.
# =============================================================================

from dataclasses import dataclass

from mailsync.imap.errors import UnsupportedProviderError


@dataclass(frozen=True)
class ProviderProfile:
    """
    Connection and folder layout for one provider.

    Attributes:
        name: Provider key ("gmail", "outlook").
        imap_host: IMAP server hostname, also used for TLS verification.
        imap_port: IMAP over implicit TLS port.
        inbox_path / sent_path / drafts_path / archive_path:
            Server paths of the baseline folders.
    """
    name: str
    imap_host: str
    imap_port: int
    inbox_path: str
    sent_path: str
    drafts_path: str
    archive_path: str


PROVIDERS: dict[str, ProviderProfile] = {
    "gmail": ProviderProfile(
        name="gmail",
        imap_host="imap.gmail.com",
        imap_port=993,
        inbox_path="INBOX",
        sent_path="[Gmail]/Sent Mail",
        drafts_path="[Gmail]/Drafts",
        archive_path="[Gmail]/All Mail",
    ),
    "outlook": ProviderProfile(
        name="outlook",
        imap_host="outlook.office365.com",
        imap_port=993,
        inbox_path="INBOX",
        sent_path="Sent Items",
        drafts_path="Drafts",
        archive_path="Archive",
    ),
}


def get_provider(provider: str) -> ProviderProfile:
    """
    Look up a provider profile by name (case-insensitive).

    Raises:
        UnsupportedProviderError: If the provider is not in the table.
    """
    try:
        return PROVIDERS[provider.strip().lower()]
    except (KeyError, AttributeError):
        raise UnsupportedProviderError(provider) from None
