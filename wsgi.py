#!/usr/bin/env python3
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from rentaldesk import create_app  # noqa: E402

app = create_app()
