"""Decorators injecting autorenewed vault credentials into functions"""
import threading

from .exceptions import LeaseTerminated


class InjectCredentialData:
    """Decorator injecting the data of a managed credential as first argument"""

    def __init__(self, manager, mount, role):
        """
        Constructs a decorator holding an autorenewed credential for mount and role.

        The credential is fetched once here and kept current through the lease observer, so
        when the lease is replaced later calls see the new one.

        :type manager: vault_lease_manager.LeaseManager
        :param manager: The manager used to obtain and renew the credential

        :type mount: str
        :param mount: The vault mount i.e. mysql

        :type role: str
        :param role: The role to obtain credentials for
        """
        self.manager = manager
        self.mount = mount
        self.role = role
        self.lock = threading.Lock()
        self.failure = None
        self.credential = manager.get_credential(mount, role, observer=self._lease_changed,
                                                 on_error=self._lease_failed)

    def _lease_changed(self, credential, extended):
        if not extended:
            with self.lock:
                self.credential = credential

    def _lease_failed(self, error):
        # nothing renews the lease any more, stop handing it out
        with self.lock:
            self.failure = error
            self.credential = None

    def current_data(self):
        with self.lock:
            credential = self.credential
            failure = self.failure
        if credential is None:
            raise LeaseTerminated(self.mount, self.role) from failure
        return dict(credential.data)

    def __call__(self, func):
        """
        Return a function with the credential data injected as first argument.

        :type func: object
        :param func: The function for injecting a single non-keyworded argument too.
        :return The function with the injected argument.
        """

        def _wrapped_func(*args, **kwargs):
            """
            Internal function to execute wrapped function
            """
            return func(self.current_data(), *args, **kwargs)

        return _wrapped_func


class InjectKeywordedCredential(InjectCredentialData):
    """Decorator injecting fields of a managed credential as keyword arguments"""

    def __init__(self, manager, mount, role, **kwargs):
        """
        :type kwargs: dict
        :param kwargs: dictionary mapping keyword argument of wrapped function to credential data key
        """
        self.kwarg_map = kwargs
        super(InjectKeywordedCredential, self).__init__(manager, mount, role)

    def __call__(self, func):
        """
        Return a function with injected keyword arguments from the credential data.

        :type func: object
        :param func: function for injecting keyword arguments.
        :return The original function with injected keyword arguments
        """

        def _wrapped_func(*args, **kwargs):
            """
            Internal function to execute wrapped function
            """
            data = self.current_data()
            resolved_kwargs = dict()
            for orig_kwarg in self.kwarg_map:
                data_key = self.kwarg_map[orig_kwarg]
                try:
                    resolved_kwargs[orig_kwarg] = data[data_key]
                except KeyError:
                    raise RuntimeError('Credential does not contain key {0}'.format(data_key)) from None
            return func(*args, **resolved_kwargs, **kwargs)

        return _wrapped_func
