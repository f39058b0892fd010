# -*- coding: utf-8 -*-

class LeaseManagerError(Exception):
    """Base Error class."""


class VaultConfigError(LeaseManagerError):
    CUSTOM_ERROR_MESSAGE = "Vault setting {} is not configured, pass it explicitly or set it in the environment"

    def __init__(self, setting):
        super(VaultConfigError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(setting))
        self._setting = setting

    @property
    def setting(self):
        return self._setting


class TransportError(LeaseManagerError):
    CUSTOM_ERROR_MESSAGE = "Vault request {} {} failed error {}"

    def __init__(self, method, path, error):
        super(TransportError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(method,
                                                                              path,
                                                                              str(error)))
        self._method = method
        self._path = path
        self._error = error

    @property
    def method(self):
        return self._method

    @property
    def path(self):
        return self._path

    @property
    def error(self):
        return self._error


class BackendRejection(LeaseManagerError):
    CUSTOM_ERROR_MESSAGE = "Vault rejected {} {} with status {} errors {}"

    def __init__(self, method, path, status_code, errors):
        super(BackendRejection, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(method,
                                                                                path,
                                                                                status_code,
                                                                                errors))
        self._method = method
        self._path = path
        self._status_code = status_code
        self._errors = errors

    @property
    def method(self):
        return self._method

    @property
    def path(self):
        return self._path

    @property
    def status_code(self):
        return self._status_code

    @property
    def errors(self):
        return self._errors


class UnknownMount(LeaseManagerError):
    CUSTOM_ERROR_MESSAGE = "Mount {} is not in the vault mount table"

    def __init__(self, mount):
        super(UnknownMount, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(mount))
        self._mount = mount

    @property
    def mount(self):
        return self._mount


class LeaseTerminated(LeaseManagerError):
    CUSTOM_ERROR_MESSAGE = "Lease for {}/{} has been revoked, has expired or is no longer renewed"

    def __init__(self, mount, role):
        super(LeaseTerminated, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(mount, role))
        self._mount = mount
        self._role = role

    @property
    def mount(self):
        return self._mount

    @property
    def role(self):
        return self._role
