from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime, parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .exceptions import InvalidArgument, PermissionDenied
from .models import AuditLog, Profile
from .serializers import UserSerializer, UserCreateSerializer, ProfileSerializer, AuditLogSerializer
from .signals import default_profile_name
from .utils import create_audit_log


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        profile = Profile.objects.filter(user=user).first()
        token['full_name'] = profile.full_name if profile else default_profile_name(user)
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint; signs the new user in"""
    serializer = UserCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = serializer.save()
    create_audit_log(
        request=request,
        user=user,
        action='register',
        model_name='User',
        object_id=user.id,
        object_name=user.username,
    )
    token = CustomTokenObtainPairSerializer.get_token(user)
    return Response({
        'user': UserSerializer(user).data,
        'profile': ProfileSerializer(user.profile).data,
        'access': str(token.access_token),
        'refresh': str(token),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Sign out by blacklisting the supplied refresh token"""
    refresh = request.data.get('refresh')
    if not refresh:
        raise InvalidArgument('Refresh token is required.')
    try:
        token = RefreshToken(refresh)
    except TokenError:
        raise InvalidArgument('Refresh token is invalid or expired.')
    if str(token.get('user_id')) != str(request.user.pk):
        raise PermissionDenied('Refresh token belongs to another user.')
    token.blacklist()
    return Response(status=status.HTTP_205_RESET_CONTENT)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current session: the user and their profile. PATCH edits the profile name only."""
    user = request.user
    profile, _ = Profile.objects.get_or_create(
        user=user,
        defaults={'full_name': default_profile_name(user)},
    )

    if request.method == 'PATCH':
        serializer = ProfileSerializer(profile, data={'full_name': request.data.get('full_name', '')}, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        old_name = profile.full_name
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Profile',
            object_id=profile.pk,
            object_name=profile.full_name,
            changes={'full_name': {'old': old_name, 'new': profile.full_name}},
        )

    return Response({
        'user': UserSerializer(user).data,
        'profile': ProfileSerializer(profile).data,
    })


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs; non-staff users only see their own"""
    queryset = AuditLog.objects.select_related('user', 'user__profile')

    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action')
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model')
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from')
    if date_from:
        parsed = parse_datetime(date_from) or parse_date(date_from)
        if parsed is None:
            raise InvalidArgument('date_from must be an ISO date or datetime.')
        queryset = queryset.filter(created_at__gte=parsed)
    date_to = request.query_params.get('date_to')
    if date_to:
        parsed = parse_datetime(date_to) or parse_date(date_to)
        if parsed is None:
            raise InvalidArgument('date_to must be an ISO date or datetime.')
        queryset = queryset.filter(created_at__lte=parsed)

    queryset = queryset.order_by('-created_at')
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not request.user.is_staff and audit_log.user_id != request.user.pk:
        raise PermissionDenied('You can only view your own audit logs.')

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)
