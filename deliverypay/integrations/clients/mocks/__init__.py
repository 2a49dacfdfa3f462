"""
Mock integration clients.

These clients return fake (but realistic) responses without calling any external API.
They are used when:
- no ERPNext site or M-Pesa gateway is configured
- we want to test the collection flow end-to-end without external dependencies

Important:
- Mock clients must follow the SAME interface as real HTTP clients.
- Mock clients should return data shaped according to deliverypay/integrations/contracts/*

Switching to real:
The selection of mock vs real clients happens in deliverypay/api/main.py only.
"""
