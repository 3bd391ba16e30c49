"""
Campus marketplace client.

Screens for listing, searching, selling and chatting about products, backed
by a hosted auth/storage/Postgres platform. Each backend concern sits behind
a small protocol with an in-memory implementation for development and tests.
"""
