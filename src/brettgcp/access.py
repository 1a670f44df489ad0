from collections.abc import Iterable
from pathlib import Path
import json
import copy
import logging
import os
from functools import wraps

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError
import googleapiclient.discovery_cache as gcp_discovery_cache

from .errors import UnauthenticatedError, from_http_error

logger = logging.getLogger(__name__)

class _GCPAccess():
    """
    Class encapsulating authenticated access to Google Cloud.
    Credentials are resolved in this order:
      - a service account keyfile (keyfile property or GOOGLE_CLOUD_KEYFILE)
      - a cached OAuth refresh token from a previous installed-app flow
      - the installed-app OAuth flow itself if a client secrets file exists
      - application default credentials (GOOGLE_APPLICATION_CREDENTIALS, gcloud, metadata server)
    Sessions from the OAuth flow are cached and refreshed so confirmation does not
    need to happen repeatedly.
    Scopes are expected to be added by clients as needed and may trigger a refresh.

    It makes no sense to have multiple authenticated sessions per application so do this as a module singleton
    and then its simple to do the service retrieval (which is what most clients are really after) as a decorator.
    """

    __SCOPES = {
        "cloud-platform": "https://www.googleapis.com/auth/cloud-platform",
        "cloud-platform-ro": "https://www.googleapis.com/auth/cloud-platform.read-only",
        "bigquery": "https://www.googleapis.com/auth/bigquery",
        "bigquery-insert": "https://www.googleapis.com/auth/bigquery.insertdata",
        "logging-read": "https://www.googleapis.com/auth/logging.read",
        "logging-write": "https://www.googleapis.com/auth/logging.write",
        "logging-admin": "https://www.googleapis.com/auth/logging.admin",
        "pubsub": "https://www.googleapis.com/auth/pubsub",
        "datastore": "https://www.googleapis.com/auth/datastore",
        "dns": "https://www.googleapis.com/auth/ndev.clouddns.readwrite",
        "dns-ro": "https://www.googleapis.com/auth/ndev.clouddns.readonly",
        "translate": "https://www.googleapis.com/auth/cloud-translation",
        "monitoring": "https://www.googleapis.com/auth/monitoring",
        "monitoring-read": "https://www.googleapis.com/auth/monitoring.read",
        "monitoring-write": "https://www.googleapis.com/auth/monitoring.write",
        "storage": "https://www.googleapis.com/auth/devstorage.full_control",
        "storage-ro": "https://www.googleapis.com/auth/devstorage.read_only",
        "storage-rw": "https://www.googleapis.com/auth/devstorage.read_write",
        "language": "https://www.googleapis.com/auth/cloud-language",
        "vision": "https://www.googleapis.com/auth/cloud-vision",
        "openid": "openid",
        "email": "email",
        "profile": "profile",
        "userinfo-email": "https://www.googleapis.com/auth/userinfo.email",
        "userinfo-profile": "https://www.googleapis.com/auth/userinfo.profile"
    }
    __SCOPE_URL_PREFIX = "https://www.googleapis.com/"
    __PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT")
    __KEYFILE_ENV_VAR = "GOOGLE_CLOUD_KEYFILE"

    __DEFAULT_AUTH_PROMPT_MSG = "Please visit this URL to authorize this application: {url}"
    __DEFAULT_AUTH_FLOW_SUCCESS_MSG = "The authentication flow has completed. You may close this window."
    __DEFAULT_SECRETS = str((Path.home() / "gcp_client_secrets.json").absolute())
    __DEFAULT_CACHE = str((Path.home() / "gcp_tokens.json").absolute())
    __DEFAULT_NUM_RETRIES = 3

    def __init__(self) -> None:
        """
        config and scopes can be specified here but as this is a global singleton
        its more expected to add them later.
        """
        self.reset()

    def __bool__(self) -> bool:
        """True is we are connected and authenticated"""
        return self.connected

    def __str__(self) -> str:
        if self.connected:
            return f"Connected:{self.project}:{str(self.session_scopes)}"
        return f"Disconnected:{str(self.__scopes)}"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @classmethod
    def get_scope(cls, scope: str) -> str:
        """
        Get a scope based on simplified label.
        A raw URL will also be expected.
        """
        s = str(scope)
        sc = cls.__SCOPES.get(s, "")
        if not sc and s.startswith(cls.__SCOPE_URL_PREFIX):
            sc = s
        return sc

    @property
    def project(self) -> str|None:
        """
        The default project ID used by the service modules when none is given.
        Explicit assignment wins, then the environment, then whatever the
        credentials know about.
        """
        if self.__project:
            return self.__project
        for var in self.__PROJECT_ENV_VARS:
            v = os.environ.get(var)
            if v:
                return v
        return self.__creds_project

    @project.setter
    def project(self, value: str|None) -> None:
        self.__project = None if value is None else str(value)

    @property
    def keyfile(self) -> Path|None:
        """
        Path to a service account JSON keyfile.
        """
        if self.__keyfile is not None:
            return self.__keyfile
        v = os.environ.get(self.__KEYFILE_ENV_VAR)
        return Path(v) if v else None

    @keyfile.setter
    def keyfile(self, value: Path|str|None) -> None:
        """
        Set path to the keyfile.
        If this changes we need to reconnect as we have new credentials.
        """
        val = None if value is None else value if isinstance(value, Path) else Path(str(value))
        if val != self.__keyfile:
            self.__keyfile = val
            if self.connected:
                self.connect()

    @property
    def client_secrets(self) -> Path:
        """
        Path to client secrets file as provided by Google when generating OAuth client credentials.
        """
        return self.__secrets

    @client_secrets.setter
    def client_secrets(self, value: Path|str) -> None:
        """
        Set path to client secrets.
        If this changes we need to reconnect as we have new credentials.
        """
        val = value if isinstance(value, Path) else Path(str(value))
        if val != self.__secrets:
            self.__secrets = val
            if self.connected:
                self.connect()

    @property
    def cred_cache(self) -> Path:
        """
        Path to local credential cache to not have to do full authentication each time.
        """
        return self.__cache

    @cred_cache.setter
    def cred_cache(self, value: Path|str):
        """
        Set path to credential cache.
        If this changes we need to reconnect as the cache is now invalid.
        """
        val = value if isinstance(value, Path) else Path(str(value))
        if val != self.__cache:
            self.__cache = val
            if self.connected:
                self.connect()

    def clear(self):
        """Reset the access state."""
        self.__creds = None
        self.__creds_project = None
        self.__scopes = []
        self.__services = {}

    @property
    def connected(self) -> bool:
        """
        Are we authenticated with Google?
        """
        return bool(self.__creds) and bool(self.__creds.valid)

    @property
    def session_scopes(self) -> list[str]:
        """
        Scopes authenticated by Google for this session.
        This differs to self.scopes as that is what is requested or to be requested.
        """
        if self.connected:
            return list(self.__creds.scopes or [])
        return []

    @property
    def scopes(self) -> list[str]:
        """
        The scopes requested or to be requested on next authentication sequence.
        """
        return self.__scopes

    @scopes.setter
    def scopes(self, value: None|list[str]|str) -> None:
        """
        Override a new list of session scopes.
        This will trigger a reconnect if the new list contains scopes
        that are not part of the current authenticate list.
        """
        slist = []
        if value is not None:
            if isinstance(value,str) or not isinstance(value,Iterable):
                s = self.get_scope(str(value))
                if s:
                    slist.append(s)
            else:
                for v in value:
                    s = self.get_scope(str(v))
                    if s:
                        slist.append(s)
        self.__scopes = slist
        if self.__scopes and self.connected:
            self.refresh()
        else:
            self.__creds = None
            self.__services = {}

    def append_scopes(self, *args) -> bool:
        """
        Adding to the current scope list.
        Typically it is intended that client dependent modules will add the specific
        scopes they require on init.
        """
        for a in args:
            b = [a] if isinstance(a,str) or not isinstance(a, Iterable) else a
            for i in b:
                s = self.get_scope(str(i))
                if s and s not in self.__scopes:
                    self.__scopes.append(s)
        return self.refresh()

    def scope_in_session(self, scope: str) -> bool:
        """
        Is the specified scope in the currently authenicated session?
        """
        s = self.get_scope(scope)
        return bool(s) and self.connected and (s in self.session_scopes)

    @property
    def creds(self):
        """
        Current active access credentials or None
        """
        return self.__creds

    @creds.setter
    def creds(self, value) -> None:
        """
        Inject credentials obtained elsewhere, dropping any built services.
        """
        self.__creds = value
        self.__services = {}

    @property
    def services(self) -> dict[str,Resource]:
        """
        Current active services.  Can be empty.
        """
        return self.__services

    @property
    def num_retries(self) -> int:
        """Retries handed to the API client's request.execute() for transient failures."""
        return self.__num_retries

    @num_retries.setter
    def num_retries(self, value: int) -> None:
        v = int(value)
        if v < 0:
            raise ValueError(f"Invalid num_retries value: {value}")
        self.__num_retries = v

    @property
    def config(self) -> dict:
        """
        Get all configuration state as a dict.
        Convenience for getting it all at once for pushing into a json, toml, ini, etc, file.
        """
        config = {
            'project': self.__project,
            'keyfile': str(self.__keyfile) if self.__keyfile is not None else None,
            'secrets': str(self.__secrets),
            'cache': str(self.__cache),
            'scopes': list(self.__scopes),
            'server': self.auth_server,
            'port': self.auth_port,
            'developer_key': self.__developer_key,
            'num_retries': self.__num_retries
        }
        return config

    @config.setter
    def config(self, config: dict) -> None:
        """
        Set configuration state from a dict.
        Convenience method for inserting state pulled from a config file or equivalent.
        """
        reconnect = False
        v = config.get('port', None)
        if v is not None:
            self.auth_port = int(v)
        v = config.get('server', None)
        if v is not None:
            self.auth_server = str(v)
        v = config.get('project', None)
        if v is not None:
            self.project = v
        v = config.get('num_retries', None)
        if v is not None:
            self.num_retries = v
        v = config.get('developer_key', None)
        if v is not None:
            self.developer_key = v
        v = config.get('scopes', [])
        if v:
            self.__scopes = [s for s in (self.get_scope(str(i)) for i in v) if s]
            reconnect = True
        v = config.get('keyfile', None)
        if v is not None:
            self.__keyfile = Path(v)
            reconnect = True
        v = config.get('cache', None)
        if v is not None:
            self.__cache = Path(v)
            reconnect = True
        v = config.get('secrets', None)
        if v is not None:
            self.__secrets = Path(v)
            reconnect = True
        v = config.get('auth_prompt_msg', None)
        if v is not None:
            self.auth_prompt_msg = str(v)
        v = config.get('flow_success_msg', None)
        if v is not None:
            self.auth_flow_success_msg = str(v)
        if reconnect and self.connected:
            self.connect()

    def load_config(self, path: Path|str) -> dict:
        """Read a JSON config file into the access state."""
        with open(Path(path), 'r', encoding='utf-8') as f:
            config = json.load(f)
        self.config = config
        return config

    def save_config(self, path: Path|str) -> None:
        """Write the current config as JSON."""
        with open(Path(path), 'w', encoding='utf-8') as f:
            json.dump(self.config, f, ensure_ascii=False, indent=2)

    @property
    def developer_key(self) -> str|None:
        return self.__developer_key

    @developer_key.setter
    def developer_key(self, value: str|None) -> None:
        v = value if value is None else str(value)
        if v != self.__developer_key:
            self.__services = {}
            self.__developer_key = v
            self.__key_only = False

    def reset(self) -> None:
        """
        Reset all connection state to defaults.
        """
        self.__project = None
        self.__creds_project = None
        self.__keyfile = None
        self.__secrets = Path(self.__DEFAULT_SECRETS)
        self.__cache = Path(self.__DEFAULT_CACHE)
        self.__discovery_cache = gcp_discovery_cache.autodetect()
        self.__creds = None
        self.__scopes = []
        self.__services = {}
        self.__developer_key = None
        self.__key_only = False
        self.__num_retries = self.__DEFAULT_NUM_RETRIES
        self.auth_server = 'localhost'
        self.auth_port = 0
        self.auth_prompt_msg = self.__DEFAULT_AUTH_PROMPT_MSG
        self.auth_flow_success_msg = self.__DEFAULT_AUTH_FLOW_SUCCESS_MSG

    def refresh(self) -> bool:
        """
        Check the current scopes and if new requested ones are not present
        in the current session_scopes, refresh the access.
        """
        scopes_accounted = all(s in self.session_scopes for s in self.__scopes)
        if self.connected and not scopes_accounted:
            return self.connect()
        return True

    def _connect_keyfile(self, requested_scopes: list[str]) -> None:
        keyfile = self.keyfile
        if keyfile is None:
            return
        if not (keyfile.exists() and keyfile.is_file()):
            logger.warning("service account keyfile %s not found", keyfile)
            return
        self.__creds = service_account.Credentials.from_service_account_file(str(keyfile),
                                                                             scopes=requested_scopes)
        self.__creds_project = self.__creds.project_id
        # service account creds start out without a token
        try:
            self.__creds.refresh(Request())
        except google.auth.exceptions.GoogleAuthError as e:
            logger.warning("service account keyfile %s could not get a token: %s", keyfile, e)
            self.__creds = None

    def _connect_cache(self, requested_scopes: list[str]) -> None:
        if not (self.__cache.exists() and self.__cache.is_file()):
            return
        # need to check what scopes are associated with this cache
        # the refresh token doesn't resolve that on its own
        cf = self.__cache.resolve()
        with open(cf, 'r', encoding='utf-8') as f:
            j = json.load(f)
        scopes = j.get('scopes',[])
        if not all(s in scopes for s in requested_scopes):
            logger.info("credential cache %s is missing requested scopes, discarding", cf)
            self.__cache.unlink()
            return
        self.__creds = Credentials.from_authorized_user_file(str(cf), requested_scopes)
        if not self.connected and self.__creds.refresh_token:
            try:
                self.__creds.refresh(Request())
            except google.auth.exceptions.GoogleAuthError as e:
                logger.warning("failed to refresh stored creds: %s...deleting cred cache and re-authorizing", e)
            finally:
                if not self.connected:
                    self.__creds = None
                    self.__cache.unlink()

    def _connect_flow(self, requested_scopes: list[str]) -> None:
        if not (self.__secrets.exists() and self.__secrets.is_file()):
            return
        flow = InstalledAppFlow.from_client_secrets_file(str(self.__secrets), requested_scopes)
        self.__creds = flow.run_local_server(host=self.auth_server, port=self.auth_port,
                                             authorization_prompt_message=self.auth_prompt_msg,
                                             success_message=self.auth_flow_success_msg)
        if self.connected:
            # only the refresh token and client are needed to rebuild the session,
            # scopes are saved so the cache can be checked against future requests
            user_info = {'refresh_token': self.__creds.refresh_token, 'client_id': self.__creds.client_id,
                         'client_secret': self.__creds.client_secret, 'scopes': requested_scopes}
            with open(self.__cache.resolve(), 'w', encoding='utf-8') as f:
                json.dump(user_info, f, ensure_ascii=False, indent=2)

    def _connect_default(self, requested_scopes: list[str]) -> None:
        try:
            # this will look at the GOOGLE_APPLICATION_CREDENTIALS envvar and
            # other cloud default locations
            self.__creds, self.__creds_project = google.auth.default(scopes=requested_scopes)
        except google.auth.exceptions.DefaultCredentialsError as e:
            logger.warning("no application default credentials available: %s", e)
            self.__creds = None
            return
        if not self.__creds.valid:
            try:
                self.__creds.refresh(Request())
            except google.auth.exceptions.GoogleAuthError as e:
                logger.warning("application default credentials could not be refreshed: %s", e)
                self.__creds = None

    def connect(self) -> bool:
        """
        Establish a new authentication session.
        If no scopes were asked for, the broad cloud-platform scope is used as
        that is what nearly every Cloud API accepts.
        """
        self.__creds = None
        self.__creds_project = None
        self.__services = {}
        self.__key_only = False
        if not self.__scopes:
            self.__scopes = [self.get_scope("cloud-platform")]
        requested_scopes = copy.copy(self.__scopes)
        for step in (self._connect_keyfile, self._connect_cache,
                     self._connect_flow, self._connect_default):
            step(requested_scopes)
            if self.connected:
                logger.info("connected to Google Cloud via %s", step.__name__.removeprefix("_connect_"))
                break
        return self.connected

    def get_service(self, name: str, version: str) -> Resource|None:
        """
        Build the requested service if not already available, connecting if required.
        Can return None if no connection present.
        Credentials are always looked for first.  Only when there are none and
        a developer_key is set is the service built with the key alone, which
        is enough for APIs like Translate.  That is remembered so the search
        isn't repeated on every call, connect() starts it over.
        """
        if not self.connected and not self.__key_only:
            self.connect()
        if not self.connected:
            if self.__developer_key is None:
                return None
            self.__key_only = True
        id = f'{name}:{version}'
        s = self.__services.get(id, None)
        if s is None:
            s = build(name, version, credentials=self.__creds if self.connected else None,
                      developerKey=self.__developer_key, cache=self.__discovery_cache)
            if s:
                self.__services[id] = s
        return s

    def require_service(self, name: str, version: str) -> Resource:
        """
        As get_service() but raise rather than return None when no credentials could be found.
        """
        s = self.get_service(name, version)
        if s is None:
            raise UnauthenticatedError(f"Unable to obtain Google Cloud credentials for {name}:{version}")
        return s

gcp = _GCPAccess()

def execute(request, num_retries: int|None = None):
    """
    Run a request built from a discovery service.
    Transient failures are retried by the API client itself, anything else
    comes back as one of the GoogleCloudError types.
    """
    retries = gcp.num_retries if num_retries is None else num_retries
    try:
        return request.execute(num_retries=retries)
    except HttpError as e:
        raise from_http_error(e) from e

def service(name: str, version: str):
    """
    Decorator delivering the built service to a function that makes its own
    requests, as the service keyword.  A service passed in explicitly is kept,
    which is handy for handing in a mock.
        @service("pubsub", "v1")
        def topic_names(project, service=None):
            ...
    """
    def _inner_decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            if kwargs.get('service') is None:
                kwargs['service'] = gcp.require_service(name, version)
            return f(*args, **kwargs)
        return wrapped
    return _inner_decorator
