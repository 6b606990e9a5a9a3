# SPDX-License-Identifier: Apache-2.0

"""
WSGI entry point for serverless deployment of the onboarding API.
"""

import os
from app import app

if __name__ == "__main__":
    app.run(debug=False, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
