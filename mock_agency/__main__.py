"""
Run the agency with uvicorn: ``python -m mock_agency``
"""
import uvicorn

from mock_agency.core.config import settings


def main() -> None:
    uvicorn.run(
        "mock_agency.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,  # logging is configured by mock_agency.core.logging
    )


if __name__ == "__main__":
    main()
