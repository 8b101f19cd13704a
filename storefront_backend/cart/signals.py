# cart/signals.py

"""
cart_changed is sent after any cart mutation (add, update, remove, clear,
merge, post-order cleanup) so UI-facing layers can refresh.

kwargs: owner_key, reason
"""

from django.dispatch import Signal

cart_changed = Signal()
