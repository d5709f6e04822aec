from django.contrib.auth import get_user_model
from rest_framework import generics, permissions, status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView

from carrento_backend.exceptions import NotFound
from .permissions import CAPABILITY_ROLES, MANAGE_USERS, capability_required, check_access, redirect_for
from .serializers import AccessCheckSerializer, ProfileSerializer, RegisterSerializer, RoleChangeSerializer
from .services import UserService

User = get_user_model()


class RegisterView(generics.CreateAPIView):
    queryset = User.objects.all()
    permission_classes = (permissions.AllowAny,)
    serializer_class = RegisterSerializer


class MeView(generics.RetrieveUpdateAPIView):
    serializer_class = ProfileSerializer

    def get_object(self):
        return self.request.user


class AccessCheckView(APIView):
    """Tell a client whether the current session may open a portal or action."""
    permission_classes = (permissions.AllowAny,)

    def get(self, request, capability):
        if capability not in CAPABILITY_ROLES:
            raise NotFound(f"Unknown capability: {capability}")
        user = request.user
        is_authenticated = bool(user and user.is_authenticated)
        role = user.role if is_authenticated else None
        decision = check_access(is_authenticated, role, capability)
        serializer = AccessCheckSerializer({
            'capability': capability,
            'decision': decision,
            'redirect_to': redirect_for(decision),
        })
        return Response(serializer.data)


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated, capability_required(MANAGE_USERS)]
    filterset_fields = ['role']

    def get_queryset(self):
        return UserService.users_by_role()


class ChangeRoleView(APIView):
    def post(self, request, user_id):
        serializer = RoleChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserService.change_role(request.user.role, user_id, serializer.validated_data['role'])
        return Response(ProfileSerializer(user).data, status=status.HTTP_200_OK)
