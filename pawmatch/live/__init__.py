"""
Live feeds: store interface, snapshot merging, and per-role query plans.

Modules
-------
query  : Query + DocumentStore ABC + Subscription + SERVER_TIMESTAMP.
merger : merge_documents() + LiveCollectionView + FailoverSubscription
         + LiveCollectionMerger.
plans  : pet/application/thread FeedPlans per Role + open_feed().
"""
