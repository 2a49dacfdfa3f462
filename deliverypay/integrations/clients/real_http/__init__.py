"""
Real HTTP integration clients.

These clients communicate with real external systems via HTTP:
- the ERPNext REST API (sales orders, customers, addresses, payment entries)
- an M-Pesa STK push bridge

Important:
- Must implement the same interfaces as the mock clients
- Must return data shaped according to deliverypay/integrations/contracts/*
"""
