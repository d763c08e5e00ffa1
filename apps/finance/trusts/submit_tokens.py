"""One-time tokens that stop a double-submitted money form from posting twice."""

import uuid


SESSION_KEY = 'trust_submit_tokens'
FIELD_NAME = 'submit_token'
MAX_PENDING = 20


def issue_token(request, scope):
    tokens = request.session.get(SESSION_KEY, {})
    pending = tokens.get(scope, [])
    token = uuid.uuid4().hex
    tokens[scope] = (pending + [token])[-MAX_PENDING:]
    request.session[SESSION_KEY] = tokens
    return token


def consume_token(request, scope):
    """Return True the first time a posted token is seen, False on a replay."""
    token = request.POST.get(FIELD_NAME, '')
    tokens = request.session.get(SESSION_KEY, {})
    pending = tokens.get(scope, [])
    if not token or token not in pending:
        return False

    pending.remove(token)
    tokens[scope] = pending
    request.session[SESSION_KEY] = tokens
    return True
