from rest_framework import generics, permissions

from .serializers import UserBasicSerializer


class UserProfileView(generics.RetrieveAPIView):
    """The authenticated user's own profile."""

    serializer_class = UserBasicSerializer
    permission_classes = (permissions.IsAuthenticated,)

    def get_object(self):
        return self.request.user
