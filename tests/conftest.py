from vanity_mirror.testing.conftest import (  # noqa: F401
    app_store_config,
    es256_signer,
    mock_upstream,
    rs256_signer,
    service_account,
    window,
)
