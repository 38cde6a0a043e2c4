"""
tradefeed - trading-journal feed synchronization engine

Keeps client-held, per-space feeds consistent with a remote store under
optimistic writes, keyset pagination and late-arriving author profiles.
"""

__version__ = "0.1.0"

# Re-export the main entry points for convenience
from tradefeed.core.config.models import FeedConfig
from tradefeed.core.entries.models import Entry, EntryDraft, FeedSnapshot, Profile
from tradefeed.core.feed import FeedClient

__all__ = ["Entry", "EntryDraft", "FeedClient", "FeedConfig", "FeedSnapshot", "Profile", "__version__"]
