"""cofrinho: personal finance tracker.

Transactions, monthly dashboards, grocery receipts ("Mercadinho"), PT-BR CSV
import/export and an AI spending advisor, backed by a local JSON store for
guest sessions or Firestore for signed-in users.
"""

__version__ = "0.4.0"
