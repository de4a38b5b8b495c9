"""
Client keys for Flask-Limiter classes: `<class>-<client-ip>[-<user-agent>]`
"""
from flask import request


def client_ip():
    return request.remote_addr or '127.0.0.1'


def client_agent():
    return request.headers.get('User-Agent', '') or 'unknown'


def rate_limit_key(limit_class, with_agent=False):
    """Build a key function for one limiter class"""
    def key_func():
        parts = [limit_class, client_ip()]
        if with_agent:
            parts.append(client_agent())
        return '-'.join(parts)
    key_func.__name__ = f'{limit_class.replace("-", "_")}_key'
    return key_func


burst_key = rate_limit_key('burst')
