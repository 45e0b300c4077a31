"""
Pointsman signals — public event API for the notification/UI layer.

Emitted signals (all sent after the transaction commits):
- points_earned: Emitted by services.accumulation for non-empty deltas
- reward_redeemed: Emitted by services.redemption.redeem()
- redemption_code_used: Emitted by services.redemption.use_code()
- card_rotated: Emitted by services.cards.rotate_card()
"""

from django.dispatch import Signal

# Ledger signals (sender=ClientAccount)
points_earned = Signal()  # account, entries, new_balance

# Redemption signals (sender=Redemption)
reward_redeemed = Signal()  # redemption, new_balance
redemption_code_used = Signal()  # redemption, order_ref

# Card signals (sender=DigitalCard)
card_rotated = Signal()  # card, previous_sequence
