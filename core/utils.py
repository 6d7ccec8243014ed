from rest_framework import permissions


class IsClient(permissions.BasePermission):
    message = "Only clients can perform this action."

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.role == 'client'


class IsWorker(permissions.BasePermission):
    message = "Only workers can perform this action."

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.role == 'worker'


class IsAdmin(permissions.BasePermission):
    message = "Only administrators can perform this action."

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.role == 'admin' or request.user.is_superuser
