"""
Run the survey webhook with uvicorn.
"""

import uvicorn

from ivr_survey.config import get_settings
from ivr_survey.main import create_app


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
