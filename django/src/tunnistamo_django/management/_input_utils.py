from getpass import getpass

from tunnistamo_common.provider import DEFAULT_CLIENT_SCOPES, parse_client_scopes

_YES = ("y", "yes")
_NO = ("n", "no")


def prompt_yes_no(question, default=None):
    hint = {True: "Y/n", False: "y/N", None: "y/n"}[default]
    while True:
        answer = input(f"{question} [{hint}]: ").strip().lower()
        if answer == "" and default is not None:
            return default
        if answer in _YES:
            return True
        if answer in _NO:
            return False
        print("Please answer with 'yes' or 'no'.")


def prompt_non_empty(question, secret=False):
    while True:
        if secret:
            answer = getpass(f"{question} [input is hidden]\n").strip()
        else:
            answer = input(f"{question}\n").strip()

        if answer:
            return answer
        print("This value is required.")


def _invalid_scopes(scopes):
    return [scope for scope in scopes if not scope or any(char.isspace() for char in scope)]


def prompt_client_scopes():
    """
    Asks for the comma separated client scopes. An empty answer stores nothing,
    so the client keeps using the default scopes.

    The stored value is sent to Tunnistamo as is, so scopes with whitespace
    or empty items between commas are refused.
    """

    default = ",".join(DEFAULT_CLIENT_SCOPES)
    while True:
        answer = input(f"Enter the client scopes separated by commas [default: {default}]\n").strip()
        if not answer:
            return ""

        scopes = parse_client_scopes(answer)
        invalid = _invalid_scopes(scopes)
        if invalid:
            print(f"Invalid scopes: {invalid}. Separate the scopes with commas only, without spaces.")
        elif "openid" not in scopes:
            print("The 'openid' scope is required by Tunnistamo.")
        else:
            return answer
