"""
Sealed-Bid Auction (sealbid)

A repeating sealed-bid auction engine built on:
- Homomorphic running maximum over encrypted bids
- Asynchronous decryption request/callback per round
- Deposit-based tie-break and refund settlement
- Pause and emergency escape paths
"""
