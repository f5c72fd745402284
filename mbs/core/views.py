from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404

from .models import AuditLog
from .serializers import UserSerializer, AuditLogSerializer
from .utils import parse_date_param
from .store_context import get_selected_store_id, get_selected_store_name

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
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
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user and the store chosen in this browser"""
    user_data = UserSerializer(request.user).data
    store_id = get_selected_store_id(request)
    user_data['selected_store'] = {
        'id': store_id,
        'name': get_selected_store_name(request),
    } if store_id else None
    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    # Non-staff users only see their own entries
    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        date_from = parse_date_param(date_from, 'date_from')
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        date_to = parse_date_param(date_to, 'date_to')
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not request.user.is_staff and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)
