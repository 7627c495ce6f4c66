"""Provider access package.

Architectural role:
    Provides provider configuration, response decoding, failure classification
    and the HTTP transports used by `core.engine`.

Module split:
    - `provider_config`: environment-driven endpoints and credential lookup.
    - `schemas`: provider JSON decoding into tagged job states.
    - `errors`: HTTP failure classification into the closed taxonomy.
    - `queue_client`: submit/poll/fetch client for the queue-based provider.
    - `sync_client`: direct-response client for the free provider.
    - `transfer`: input uploads and artifact downloads.
"""
