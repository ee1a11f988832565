# sales/views/order.py

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from sales.models import Order
from sales.serializers import OrderSerializer, TransitionCheckQuerySerializer
from sales.services.fulfillment_orchestrator import (
    ConcurrencyConflict,
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    PersistenceFailure,
    complete_order,
)
from sales.services.order_lifecycle import allowed_transitions, is_transition_allowed
from sales.views.permissions import CanCompleteOrder


class CompleteOrderView(APIView):
    """
    ORDER COMPLETION ENDPOINT (AUTHORITATIVE)

    GUARANTEES:
    - Atomic completion
    - FIFO cost of goods sold stamped on every line
    - Completing twice never deducts stock twice (409 on the second call)
    """

    permission_classes = [IsAuthenticated, CanCompleteOrder]

    @extend_schema(
        request=None,
        responses={200: OrderSerializer},
        description="Move an order to 'completed' and allocate FIFO cost for its lines",
    )
    def post(self, request, pk):
        try:
            order = complete_order(order_id=pk, user=request.user)
        except OrderNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)

        except InvalidTransition as exc:
            return Response(
                {
                    "detail": str(exc),
                    "code": "invalid_transition",
                    "allowed": sorted(exc.allowed),
                },
                status=status.HTTP_409_CONFLICT,
            )

        except InsufficientStock as exc:
            return Response(
                {
                    "detail": str(exc),
                    "code": "insufficient_stock",
                    "variant_id": str(exc.variant_id),
                    "requested": exc.requested,
                    "available": exc.available,
                },
                status=status.HTTP_409_CONFLICT,
            )

        except ConcurrencyConflict as exc:
            return Response(
                {"detail": str(exc), "code": "concurrency_conflict"},
                status=status.HTTP_409_CONFLICT,
            )

        except PersistenceFailure as exc:
            return Response(
                {"detail": str(exc), "code": "persistence_failure"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderAllowedTransitionsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={
            200: {
                "type": "object",
                "properties": {
                    "order_id": {"type": "string"},
                    "status": {"type": "string"},
                    "allowed": {"type": "array", "items": {"type": "string"}},
                },
            }
        },
    )
    def get(self, request, pk):
        order = Order.objects.filter(pk=pk).only("id", "status").first()
        if order is None:
            return Response(
                {"detail": f"Order {pk} not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(
            {
                "order_id": str(order.pk),
                "status": order.status,
                "allowed": sorted(allowed_transitions(order.status)),
            }
        )


class TransitionCheckView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter("current", str, required=True),
            OpenApiParameter("next", str, required=True),
        ],
        responses={
            200: {
                "type": "object",
                "properties": {
                    "current": {"type": "string"},
                    "next": {"type": "string"},
                    "allowed": {"type": "boolean"},
                },
            }
        },
    )
    def get(self, request):
        serializer = TransitionCheckQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        current = serializer.validated_data["current"]
        target = serializer.validated_data["next"]

        return Response(
            {
                "current": current,
                "next": target,
                "allowed": is_transition_allowed(current, target),
            }
        )
