"""
Application workflow: status changes that write to the store.

Modules
-------
applications  : ApplicationWorkflow (submit, set_status, reopen, revoke,
                start_conversation).
notifications : SystemMessage + SystemNotifier (retried, best effort).
"""
