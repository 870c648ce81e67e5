import logging

from django.conf import settings
from django.db import DatabaseError
from rest_framework import status, viewsets, serializers as drf_serializers
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .permissions import IsSettlementAdmin
from .serializers import (
    AccountCheckResponseSerializer,
    DeferredTransactionSerializer,
    MarkSettlementPaidInputSerializer,
    MarkSettlementPaidResponseSerializer,
    SettlementFilterSerializer,
    SettlementPeriodSerializer,
    SettlementSerializer,
)
from .services import (
    SettlementAlreadyProcessingError,
    SettlementDataUnavailableError,
    SettlementNotFoundError,
    SettlementNotPersistedError,
    SettlementStatusConflictError,
    SettlementVerificationError,
    daily_settlement_account_check,
    mark_settlement_paid,
    reconcile_settlements,
)

logger = logging.getLogger(__name__)


class ErrorResponseSerializer(drf_serializers.Serializer):
    error = drf_serializers.CharField()


class SettlementPagination(PageNumberPagination):
    """Pagination for the settlement list."""
    page_size = settings.SETTLEMENT_PAGE_SIZE
    page_size_query_param = 'page_size'
    max_page_size = 200


def _matches_search(runner, query):
    if runner is None:
        return False
    fields = (runner.first_name, runner.last_name, runner.email, runner.student_id_number)
    return any(query in (value or '').lower() for value in fields)


class SettlementViewSet(viewsets.ViewSet):
    """
    Admin settlement screen.

    list: Reconcile settlements and return them (filterable by status/search)
    mark_paid: Mark one settlement as paid
    account_check: Lock/unlock runner accounts based on overdue settlements
    """

    permission_classes = [IsAuthenticated, IsSettlementAdmin]
    pagination_class = SettlementPagination

    @extend_schema(
        parameters=[SettlementFilterSerializer],
        responses={200: SettlementPeriodSerializer(many=True), 503: ErrorResponseSerializer},
        tags=['settlements'],
    )
    def list(self, request):
        """
        Run a reconciliation pass and list the resulting settlements.

        GET /api/settlements/?status=pending&search=juan
        """
        filter_serializer = SettlementFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        try:
            result = reconcile_settlements(dry_run=params.get('dry_run', False))
        except SettlementDataUnavailableError as e:
            return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        periods = result.periods
        if params.get('status'):
            periods = [p for p in periods if p.status == params['status']]
        query = (params.get('search') or '').strip().lower()
        if query:
            periods = [p for p in periods if _matches_search(result.runners.get(p.worker_id), query)]

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(periods, request, view=self)
        serializer = SettlementPeriodSerializer(page, many=True, context={'runners': result.runners})

        response = paginator.get_paginated_response(serializer.data)
        response.data['counts'] = result.counts_by_status()
        response.data['created'] = result.created
        response.data['updated'] = result.updated
        response.data['deleted'] = result.deleted
        response.data['dry_run'] = result.dry_run
        response.data['warnings'] = result.warnings
        response.data['deferred'] = DeferredTransactionSerializer(result.deferred, many=True).data
        return response

    @extend_schema(
        request=MarkSettlementPaidInputSerializer,
        responses={
            200: MarkSettlementPaidResponseSerializer,
            400: ErrorResponseSerializer,
            404: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
            500: ErrorResponseSerializer,
            503: ErrorResponseSerializer,
        },
        tags=['settlements'],
    )
    @action(detail=False, methods=['post'])
    def mark_paid(self, request):
        """
        Mark a settlement as paid.

        POST /api/settlements/mark_paid/
        Body: {"settlement_id": "..."} or
              {"worker_id": "...", "period_start_date": "...", "period_end_date": "..."}
        """
        input_serializer = MarkSettlementPaidInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = input_serializer.validated_data

        try:
            result = mark_settlement_paid(
                paid_by=request.user,
                settlement_id=data.get('settlement_id'),
                worker_id=data.get('worker_id'),
                period_start=data.get('period_start_date'),
                period_end=data.get('period_end_date'),
                total_earnings=data.get('total_earnings'),
                total_transactions=data.get('total_transactions'),
            )
        except SettlementNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (
            SettlementNotPersistedError,
            SettlementAlreadyProcessingError,
            SettlementStatusConflictError,
        ) as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except SettlementVerificationError as e:
            logger.error(f"Settlement payment verification failed: {e}")
            return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except DatabaseError as e:
            logger.error(f"Settlement payment failed: {e}")
            return Response({'error': 'Payment could not be recorded, try again later'}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({
            'settlement': SettlementSerializer(result.settlement).data,
            'already_paid': result.already_paid,
            'account_still_restricted': result.account_still_restricted,
            'other_unpaid': SettlementSerializer(result.other_unpaid, many=True).data,
            'unlocked_accounts': result.unlocked_accounts,
        })

    @extend_schema(
        request=None,
        responses={200: AccountCheckResponseSerializer, 503: ErrorResponseSerializer},
        tags=['settlements'],
    )
    @action(detail=False, methods=['post'])
    def account_check(self, request):
        """
        Lock runners with long-overdue settlements and unlock those who paid.

        POST /api/settlements/account_check/
        """
        try:
            result = daily_settlement_account_check()
        except DatabaseError as e:
            logger.error(f"Settlement account check failed: {e}")
            return Response(
                {'error': 'Account check failed, try again later'},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        return Response(result)
