# products/views/availability.py

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from products.models import ProductVariant
from products.services.availability import compute_availability


class VariantAvailabilityView(APIView):
    """
    Stock availability for one product variant (catalog/listing read path).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={
            200: {
                "type": "object",
                "properties": {
                    "variant_id": {"type": "string"},
                    "total_remaining": {"type": "integer"},
                    "booked": {"type": "integer"},
                    "available": {"type": "integer"},
                    "status_tag": {"type": "string", "enum": ["in_stock", "out_of_stock"]},
                },
            }
        },
    )
    def get(self, request, pk):
        if not ProductVariant.objects.filter(pk=pk).exists():
            return Response(
                {"detail": f"Product variant {pk} not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(compute_availability(pk).as_dict())
