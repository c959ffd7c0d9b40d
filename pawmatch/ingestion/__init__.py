"""
Ingestion layer: external metadata and seed data.

Submodules:
  petfinder_client  Petfinder breed/type vocabularies with static fallbacks
  cache             CacheStore ABC + in-memory and JSON-file stores
  seed_loader       JSON import of users, pets and applications

Credential placement (.env, gitignored):
  PAWMATCH_PETFINDER_CLIENT_ID      Petfinder OAuth2 client id
  PAWMATCH_PETFINDER_CLIENT_SECRET  Petfinder OAuth2 client secret
"""
