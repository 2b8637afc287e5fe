#!/usr/bin/env python3
"""CDK app entry point (see cdk.json)."""
import logging
from typing import Optional

import aws_cdk as cdk

from wordpress_stack.infrastructure import WordpressThreeTierStack
from wordpress_stack.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def build_app(settings: Optional[Settings] = None) -> cdk.App:
    """Create the CDK app holding the WordPress stack."""
    settings = settings or get_settings()
    app = cdk.App()

    WordpressThreeTierStack(
        app,
        settings.stack_name,
        settings=settings,
        env=cdk.Environment(
            account=settings.aws_account_id,
            region=settings.aws_region,
        ),
        description=f"{settings.app_name} three-tier deployment ({settings.environment})",
    )
    return app


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    build_app(settings).synth()


if __name__ == "__main__":
    main()
