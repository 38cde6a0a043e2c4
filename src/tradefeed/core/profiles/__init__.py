"""
Profile directory and author name reconciliation.

The reconciler subscribes to the directory, so name resolution is an
explicit observer relationship rather than a side effect of loading.
"""

from tradefeed.core.profiles.directory import PROFILES_CACHE_KEY, ProfileDirectory
from tradefeed.core.profiles.reconciler import ProfileReconciler

__all__ = ["PROFILES_CACHE_KEY", "ProfileDirectory", "ProfileReconciler"]
