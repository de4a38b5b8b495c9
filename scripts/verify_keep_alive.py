"""
Check that a deployed backend answers its health and keep-alive endpoints.

    python scripts/verify_keep_alive.py https://attendance.example.com
"""
import argparse
import sys

import requests

ENDPOINTS = ('/api/health', '/api/keep-alive/ping')


def check(base_url, timeout=30):
    ok = True
    for path in ENDPOINTS:
        url = base_url.rstrip('/') + path
        try:
            response = requests.get(url, timeout=timeout)
        except requests.RequestException as e:
            print(f"❌ {url}: {e}")
            ok = False
            continue
        if response.ok:
            print(f"✅ {url}: {response.status_code} {response.elapsed.total_seconds():.2f}s")
        else:
            print(f"❌ {url}: HTTP {response.status_code}")
            ok = False
    return ok


def main(argv=None):
    parser = argparse.ArgumentParser(description='Verify health and keep-alive endpoints')
    parser.add_argument('url', help='Backend base URL')
    parser.add_argument('--timeout', type=int, default=30)
    args = parser.parse_args(argv)
    return 0 if check(args.url, args.timeout) else 1


if __name__ == '__main__':
    sys.exit(main())
