"""HTML pages served by the auth endpoints."""

from html import escape


def create_error_html(error_message: str) -> str:
    """Create the page shown when interactive sign-in fails."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>Sign-in Failed</title>
        <style>
            body {{
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                display: flex;
                justify-content: center;
                align-items: center;
                min-height: 100vh;
                margin: 0;
                background: linear-gradient(135deg, #ff6b6b 0%, #ee5a5a 100%);
            }}
            .container {{
                background: white;
                padding: 40px;
                border-radius: 12px;
                box-shadow: 0 10px 40px rgba(0,0,0,0.2);
                text-align: center;
                max-width: 400px;
            }}
            .error-icon {{
                font-size: 64px;
                margin-bottom: 20px;
            }}
            h1 {{
                color: #333;
                margin-bottom: 10px;
            }}
            .error-message {{
                color: #ee5a5a;
                background: #fff5f5;
                padding: 15px;
                border-radius: 8px;
                margin: 20px 0;
            }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="error-icon">&#10060;</div>
            <h1>Sign-in Failed</h1>
            <div class="error-message">{escape(error_message)}</div>
            <p><a href="/api/auth/google">Try signing in again</a></p>
        </div>
    </body>
    </html>
    """
