"""
Contracts (data models).

This folder defines the request/response shapes for external integrations.
Examples:
- STK push request/response formats and the payment error taxonomy
- Authorization provider interface used by the payment session
- ERPNext sales order, customer, address and payment entry records

Why this exists:
- Ensures consistent data structures across mock and real clients
- Prevents “guessing” payload formats in multiple places

Both mock and real HTTP clients should use these contracts.
"""
