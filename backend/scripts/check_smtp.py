#!/usr/bin/env python3
"""
Verify the SMTP relay configured for confirmation emails
"""
import smtplib
import socket
import sys

from rsvp_service.core.config import settings


def check_smtp() -> bool:
    print("=== Email Configuration Test ===")
    print(f"SMTP Server: '{settings.SMTP_SERVER}'")
    print(f"SMTP Port: {settings.SMTP_PORT} ({'SSL' if settings.smtp_use_ssl else 'STARTTLS'})")
    print(f"Username: '{settings.SMTP_USERNAME}'")
    print(f"From Email: '{settings.SMTP_SENDER}'")
    print(f"From Name: '{settings.SMTP_FROM_NAME}'")
    print(f"Password Set: {'Yes' if settings.SMTP_PASSWORD else 'No'}")
    print()

    if not settings.SMTP_SERVER:
        print("✗ SMTP_SERVER is not set")
        return False

    print("Testing DNS resolution...")
    try:
        ip = socket.gethostbyname(settings.SMTP_SERVER)
        print(f"✓ DNS resolution successful: {settings.SMTP_SERVER} -> {ip}")
    except OSError as e:
        print(f"✗ DNS resolution failed: {e}")
        return False

    print("\nTesting SMTP connection...")
    try:
        if settings.smtp_use_ssl:
            server = smtplib.SMTP_SSL(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT)
        else:
            server = smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT)
        with server:
            print("✓ SMTP connection successful")
            if not settings.smtp_use_ssl:
                server.starttls()
                print("✓ TLS started successfully")
            if settings.SMTP_USERNAME:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                print("✓ Authentication successful")

        print("\n🎉 All email tests passed!")
        return True

    except (smtplib.SMTPException, OSError) as e:
        print(f"✗ SMTP test failed: {e}")
        return False


if __name__ == "__main__":
    sys.exit(0 if check_smtp() else 1)
