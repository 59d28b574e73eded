"""witnessrelay: anchor-status reconciliation and witness propagation.

Polls an anchoring service for the disposition of event commits, decodes
the witness container returned for each completed commit and relays it to
downstream stores:
  - local directory (one file per commit id)
  - IPFS-compatible node via dag/import
  - event-store node via direct event upload
with optional read-back of the anchored stream.
"""

__version__ = "0.1.0"
__description__ = "Anchor status reconciliation and witness artifact relay"

from witnessrelay.core.reconciler import BatchReconciler
from witnessrelay.cli.app import app as cli

__all__ = ["BatchReconciler", "cli", "__version__"]
